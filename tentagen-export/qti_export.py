"""
QTI 2.1 / 2.2 export for TentaGen
Builds one assessmentItem per question plus an IMS content-packaging
manifest, and bundles them into a ZIP archive importable by LMS platforms.
"""
import logging
import re
import xml.etree.ElementTree as ET
import zipfile
from datetime import datetime
from io import BytesIO
from typing import Callable, List, Optional, Tuple

from config import settings
from export_utils import (
    find_option_index, question_title, resolve_score,
    slugify, export_date, split_choices, split_gaps, strip_markup
)
from models import AnswerLayout, ExportMetadata, Question, QtiInteraction
from question_types import lookup
from tags import generate_manual_tags, translate_difficulty

logger = logging.getLogger(__name__)

QTI_VERSIONS = {
    "2.1": {
        "namespace": "http://www.imsglobal.org/xsd/imsqti_v2p1",
        "schema": "http://www.imsglobal.org/xsd/qti/qtiv2p1/imsqti_v2p1.xsd",
        "template": "http://www.imsglobal.org/question/qti_v2p1/rptemplates/match_correct",
        "resource_type": "imsqti_item_xmlv2p1",
        "cp_schema": "http://www.imsglobal.org/xsd/qti/qtiv2p1/qtiv2p1_imscpv1p2_v1p0.xsd",
    },
    "2.2": {
        "namespace": "http://www.imsglobal.org/xsd/imsqti_v2p2",
        "schema": "http://www.imsglobal.org/xsd/qti/qtiv2p2/imsqti_v2p2.xsd",
        "template": "http://www.imsglobal.org/question/qti_v2p2/rptemplates/match_correct",
        "resource_type": "imsqti_item_xmlv2p2",
        "cp_schema": "http://www.imsglobal.org/xsd/qti/qtiv2p2/qtiv2p2_imscpv1p2_v1p0.xsd",
    },
}

XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
IMSCP_NAMESPACE = "http://www.imsglobal.org/xsd/imscp_v1p1"
IMSMD_NAMESPACE = "http://www.imsglobal.org/xsd/imsmd_v1p2"
IMSMD_SCHEMA = "http://www.imsglobal.org/xsd/imsmd_v1p2p4.xsd"

MANIFEST_FILENAME = "imsmanifest.xml"

SHORT_ANSWER_EXPECTED_LENGTH = 500
ESSAY_EXPECTED_LENGTH = 5000

# Placeholder canvas for image cloze questions
CANVAS_WIDTH = 600
CANVAS_HEIGHT = 400
HOTSPOT_HEIGHT = 40
HOTSPOT_MARGIN = 10

_IDENTIFIER_UNSAFE = re.compile(r"[^A-Za-z0-9_.\-]")
_TOKEN_PUNCTUATION = ".,;:!?()\"'"

# Interactions that need options; without them the item is written as an essay
_OPTION_INTERACTIONS = {
    QtiInteraction.CHOICE,
    QtiInteraction.INLINE_CHOICE,
    QtiInteraction.ORDER,
    QtiInteraction.MATCH,
    QtiInteraction.GAP_MATCH,
    QtiInteraction.GRAPHIC_GAP_MATCH,
}

def normalize_version(version: Optional[str]) -> str:
    """Accept "2.1", "21", "qti21" and friends"""
    digits = re.sub(r"\D", "", str(version or "2.1"))
    name = f"{digits[0]}.{digits[1:]}" if len(digits) > 1 else digits
    if name not in QTI_VERSIONS:
        raise ValueError(f"Unsupported QTI version: {version}")
    return name

def to_identifier(text: Optional[str], fallback: str = "id") -> str:
    """Turn free text into a valid QTI identifier"""
    identifier = _IDENTIFIER_UNSAFE.sub("_", (text or "").strip()) or fallback
    if not (identifier[0].isalpha() or identifier[0] == "_"):
        identifier = f"_{identifier}"
    return identifier

def _unique_identifiers(labels: List[str], prefix: str = "") -> List[str]:
    identifiers: List[str] = []
    for i, label in enumerate(labels):
        identifier = prefix + to_identifier(label, f"choice_{i}")
        if identifier in identifiers:
            identifier = f"{identifier}_{i}"
        identifiers.append(identifier)
    return identifiers

def _append_text(parent: ET.Element, text: str) -> None:
    """Append text after the last child of a mixed-content element"""
    if len(parent):
        last = parent[-1]
        last.tail = (last.tail or "") + text
    else:
        parent.text = (parent.text or "") + text

def _mixed_paragraph(parent: ET.Element, segments: List[str],
                     make_gap: Callable[[ET.Element, int], ET.Element]) -> ET.Element:
    """<p> with text segments and one gap element between each pair"""
    paragraph = ET.SubElement(parent, "p")
    paragraph.text = segments[0]
    for k, segment in enumerate(segments[1:]):
        gap = make_gap(paragraph, k)
        gap.tail = segment
    return paragraph

def _appended_segments(gap_count: int) -> List[str]:
    return [""] + [" "] * (gap_count - 1) + [""]

def _response_declaration(identifier: str, cardinality: str, base_type: str,
                          values: Optional[List[str]] = None) -> ET.Element:
    declaration = ET.Element("responseDeclaration")
    declaration.set("identifier", identifier)
    declaration.set("cardinality", cardinality)
    declaration.set("baseType", base_type)
    if values:
        correct = ET.SubElement(declaration, "correctResponse")
        for value in values:
            ET.SubElement(correct, "value").text = value
    return declaration

def _serialize(root: ET.Element) -> bytes:
    buffer = BytesIO()
    ET.ElementTree(root).write(buffer, encoding="utf-8", xml_declaration=True)
    return buffer.getvalue()

# =============================================================================
# Assessment Items
# =============================================================================

class QtiItemBuilder:
    """Builds assessmentItem elements for one package.

    All identifiers share the package timestamp so item ids in the manifest
    and in the item files agree.
    """

    def __init__(self, metadata: ExportMetadata, version: str = "2.1",
                 inspera: bool = False, timestamp: Optional[int] = None):
        self.metadata = metadata
        self.version = normalize_version(version)
        self.profile = QTI_VERSIONS[self.version]
        self.inspera = inspera
        self.timestamp = timestamp if timestamp is not None else int(datetime.now().timestamp() * 1000)

        self.interaction_builders = {
            QtiInteraction.CHOICE: self._choice_interaction,
            QtiInteraction.TEXT_ENTRY: self._text_entry_interaction,
            QtiInteraction.INLINE_CHOICE: self._inline_choice_interaction,
            QtiInteraction.ORDER: self._order_interaction,
            QtiInteraction.HOTTEXT: self._hottext_interaction,
            QtiInteraction.MATCH: self._match_interaction,
            QtiInteraction.GAP_MATCH: self._gap_match_interaction,
            QtiInteraction.GRAPHIC_GAP_MATCH: self._graphic_gap_match_interaction,
            QtiInteraction.EXTENDED_TEXT: self._extended_text_interaction,
        }

    def item_identifier(self, index: int) -> str:
        return f"item_{self.timestamp}_{index}"

    def response_identifier(self, index: int) -> str:
        return f"response_{self.timestamp}_{index}"

    def item_title(self, question: Question, index: int) -> str:
        if self.inspera:
            return question_title(question, index, self.metadata.subject, self.metadata.topic)
        return f"{self.metadata.subject} - {self.metadata.topic} - Question {index + 1}"

    def build(self, question: Question, index: int) -> ET.Element:
        """Complete assessmentItem element for one question"""
        definition = lookup(question.type)
        interaction = definition.qti_interaction
        if interaction in _OPTION_INTERACTIONS and not question.has_options:
            logger.debug(f"Question {index + 1} ({question.type}) has no options, exporting as essay")
            interaction = QtiInteraction.EXTENDED_TEXT

        root = ET.Element("assessmentItem")
        root.set("xmlns", self.profile["namespace"])
        root.set("xmlns:xsi", XSI_NAMESPACE)
        root.set("xsi:schemaLocation", f"{self.profile['namespace']} {self.profile['schema']}")
        root.set("identifier", self.item_identifier(index))
        root.set("title", self.item_title(question, index))
        root.set("adaptive", "false")
        root.set("timeDependent", "false")
        if self.inspera:
            root.set("toolName", settings.QTI_TOOL_NAME)
            root.set("toolVersion", settings.QTI_TOOL_VERSION)

        body = ET.Element("itemBody")
        declarations = self.interaction_builders[interaction](
            question, body, self.response_identifier(index)
        )

        for declaration in declarations:
            root.append(declaration)
        self._add_outcomes(root, question)
        root.append(body)

        processing = ET.SubElement(root, "responseProcessing")
        processing.set("template", self.profile["template"])
        return root

    def _add_outcomes(self, root: ET.Element, question: Question) -> None:
        score = ET.SubElement(root, "outcomeDeclaration", identifier="SCORE",
                              cardinality="single", baseType="float")
        ET.SubElement(ET.SubElement(score, "defaultValue"), "value").text = "0"

        max_score = ET.SubElement(root, "outcomeDeclaration", identifier="MAXSCORE",
                                  cardinality="single", baseType="float")
        ET.SubElement(ET.SubElement(max_score, "defaultValue"), "value").text = str(
            resolve_score(question, self.metadata.difficulty)
        )

        if self.version == "2.2":
            ET.SubElement(root, "outcomeDeclaration", identifier="FEEDBACK",
                          cardinality="single", baseType="identifier")

    def _add_stimulus(self, parent: ET.Element, question: Question) -> None:
        text = strip_markup(question.stimulus)
        if text:
            ET.SubElement(parent, "p").text = text

    # -------------------------------------------------------------------------
    # Interaction branches; each fills the item body and returns declarations
    # -------------------------------------------------------------------------

    def _choice_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        options = question.options
        identifiers = _unique_identifiers([option.label for option in options])

        correct: List[str] = []
        for reference in question.answers:
            index = find_option_index(options, reference)
            if index is not None and identifiers[index] not in correct:
                correct.append(identifiers[index])

        if lookup(question.type).id == "true_false":
            correct = correct[:1]
        multiple = len(correct) > 1

        self._add_stimulus(body, question)
        interaction = ET.SubElement(body, "choiceInteraction")
        interaction.set("responseIdentifier", response_id)
        interaction.set("shuffle", "false")
        interaction.set("maxChoices", str(len(correct)) if multiple else "1")
        for identifier, option in zip(identifiers, options):
            choice = ET.SubElement(interaction, "simpleChoice", identifier=identifier)
            choice.text = strip_markup(option.value) or option.label

        return [_response_declaration(response_id, "multiple" if multiple else "single", "identifier", correct)]

    def _text_entry_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        answers = question.answers
        segments = split_gaps(strip_markup(question.stimulus))
        if len(segments) == 1:
            self._add_stimulus(body, question)
            segments = _appended_segments(max(1, len(answers)))

        def make_gap(parent: ET.Element, k: int) -> ET.Element:
            return ET.SubElement(parent, "textEntryInteraction", responseIdentifier=f"{response_id}_{k}")

        _mixed_paragraph(body, segments, make_gap)

        return [
            _response_declaration(f"{response_id}_{k}", "single", "string",
                                  [answers[k]] if k < len(answers) else None)
            for k in range(len(segments) - 1)
        ]

    def _inline_choice_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        # One option per gap; the option value lists that gap's choices
        options = question.options
        answers = question.answers
        segments = split_gaps(strip_markup(question.stimulus), limit=len(options))
        if len(segments) == 1:
            self._add_stimulus(body, question)
            segments = _appended_segments(len(options))
        elif len(segments) <= len(options):
            # Options without a marker get their gaps after the text
            missing = len(options) - (len(segments) - 1)
            if segments[-1].strip():
                segments[-1] = segments[-1].rstrip() + " "
            segments.extend([" "] * (missing - 1) + [""])

        declarations: List[ET.Element] = []

        def make_gap(parent: ET.Element, k: int) -> ET.Element:
            option = options[k]
            gap_id = f"{response_id}_{k}"
            interaction = ET.SubElement(parent, "inlineChoiceInteraction", responseIdentifier=gap_id)
            interaction.set("shuffle", "false")

            expected = answers[k].strip().casefold() if k < len(answers) else None
            correct = []
            for j, text in enumerate(split_choices(option.value) or [option.label]):
                choice_id = f"gap{k}_choice{j}"
                ET.SubElement(interaction, "inlineChoice", identifier=choice_id).text = text
                if expected is not None and text.casefold() == expected and not correct:
                    correct.append(choice_id)
            declarations.append(_response_declaration(gap_id, "single", "identifier", correct))
            return interaction

        _mixed_paragraph(body, segments, make_gap)
        return declarations

    def _order_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        options = question.options
        identifiers = _unique_identifiers([option.label for option in options])

        order: List[str] = []
        for reference in question.answers:
            index = find_option_index(options, reference)
            if index is not None and identifiers[index] not in order:
                order.append(identifiers[index])
        # Without an answer key the listed order is the correct one
        if not order:
            order = list(identifiers)

        self._add_stimulus(body, question)
        interaction = ET.SubElement(body, "orderInteraction", responseIdentifier=response_id, shuffle="true")
        for identifier, option in zip(identifiers, options):
            ET.SubElement(interaction, "simpleChoice", identifier=identifier).text = strip_markup(option.value) or option.label

        return [_response_declaration(response_id, "ordered", "identifier", order)]

    def _hottext_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        targets = {
            word.strip(_TOKEN_PUNCTUATION)
            for answer in question.answers
            for word in answer.split()
        }

        interaction = ET.SubElement(body, "hottextInteraction", responseIdentifier=response_id)
        paragraph = ET.SubElement(interaction, "p")

        correct: List[str] = []
        for n, token in enumerate(strip_markup(question.stimulus).split()):
            if n:
                _append_text(paragraph, " ")
            if token.strip(_TOKEN_PUNCTUATION) in targets:
                identifier = f"token_{n}"
                ET.SubElement(paragraph, "hottext", identifier=identifier).text = token
                correct.append(identifier)
            else:
                _append_text(paragraph, token)

        if not correct:
            logger.warning(f"No stimulus word matches the answer key of {question.type} question, exporting without key")
        interaction.set("maxChoices", str(max(1, len(correct))))
        return [_response_declaration(response_id, "multiple", "identifier", correct)]

    def _match_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        options = question.options
        rows = _unique_identifiers([option.label for option in options])
        matrix = lookup(question.type).answer_layout == AnswerLayout.MATRIX

        columns: List[str] = []
        if matrix:
            for option in options:
                for column in split_choices(option.value):
                    if column not in columns:
                        columns.append(column)

        self._add_stimulus(body, question)
        interaction = ET.SubElement(body, "matchInteraction", responseIdentifier=response_id, shuffle="false")
        interaction.set("maxAssociations", str(len(rows)))
        source = ET.SubElement(interaction, "simpleMatchSet")
        target = ET.SubElement(interaction, "simpleMatchSet")

        pairs: List[str] = []
        if matrix and columns:
            # Choice matrix: every row picks one of the shared columns
            targets = _unique_identifiers(columns, prefix="val_")
            for identifier, option in zip(rows, options):
                ET.SubElement(source, "simpleAssociableChoice", identifier=identifier,
                              matchMax="1").text = strip_markup(option.label)
            for identifier, column in zip(targets, columns):
                ET.SubElement(target, "simpleAssociableChoice", identifier=identifier,
                              matchMax=str(len(rows))).text = column

            folded = [column.casefold() for column in columns]
            for k, answer in enumerate(question.answers[:len(rows)]):
                if answer.strip().casefold() in folded:
                    pairs.append(f"{rows[k]} {targets[folded.index(answer.strip().casefold())]}")
        else:
            # Matching: each label pairs with its own value
            for identifier, option in zip(rows, options):
                ET.SubElement(source, "simpleAssociableChoice", identifier=identifier,
                              matchMax="1").text = strip_markup(option.label)
            for identifier, option in zip(rows, options):
                ET.SubElement(target, "simpleAssociableChoice", identifier=f"val_{identifier}",
                              matchMax="1").text = strip_markup(option.value)
                pairs.append(f"{identifier} val_{identifier}")

        return [_response_declaration(response_id, "multiple", "directedPair", pairs)]

    def _gap_match_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        options = question.options
        answers = question.answers
        identifiers = _unique_identifiers([option.label for option in options])

        segments = split_gaps(strip_markup(question.stimulus))
        interaction = ET.Element("gapMatchInteraction", responseIdentifier=response_id, shuffle="true")
        if len(segments) == 1:
            self._add_stimulus(body, question)
            segments = _appended_segments(max(1, len(answers)))
        body.append(interaction)

        for identifier, option in zip(identifiers, options):
            ET.SubElement(interaction, "gapText", identifier=identifier,
                          matchMax="1").text = strip_markup(option.value) or option.label

        _mixed_paragraph(interaction, segments,
                         lambda parent, k: ET.SubElement(parent, "gap", identifier=f"gap_{k}"))

        pairs: List[str] = []
        for k, answer in enumerate(answers[:len(segments) - 1]):
            index = find_option_index(options, answer)
            if index is not None:
                pairs.append(f"{identifiers[index]} gap_{k}")

        return [_response_declaration(response_id, "multiple", "directedPair", pairs)]

    def _graphic_gap_match_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        options = question.options
        identifiers = _unique_identifiers([option.label for option in options])

        self._add_stimulus(body, question)
        interaction = ET.SubElement(body, "graphicGapMatchInteraction", responseIdentifier=response_id)
        ET.SubElement(interaction, "object", type="image/png", data="images/background.png",
                      width=str(CANVAS_WIDTH), height=str(CANVAS_HEIGHT))

        for identifier, option in zip(identifiers, options):
            gap_image = ET.SubElement(interaction, "gapImg", identifier=f"drag_{identifier}", matchMax="1")
            gap_image.set("objectLabel", strip_markup(option.value) or option.label)
            ET.SubElement(gap_image, "object", type="image/png", data=f"images/{identifier}.png",
                          width="100", height=str(HOTSPOT_HEIGHT))

        pairs: List[str] = []
        for (x1, y1, x2, y2), identifier in zip(self._hotspot_coords(len(options)), identifiers):
            ET.SubElement(interaction, "associableHotspot", identifier=f"hs_{identifier}",
                          shape="rect", coords=f"{x1},{y1},{x2},{y2}", matchMax="1")
            pairs.append(f"drag_{identifier} hs_{identifier}")

        return [_response_declaration(response_id, "multiple", "directedPair", pairs)]

    @staticmethod
    def _hotspot_coords(count: int) -> List[Tuple[int, int, int, int]]:
        """Evenly spaced rectangles across the middle of the canvas"""
        if count <= 0:
            return []
        slot = CANVAS_WIDTH // count
        top = (CANVAS_HEIGHT - HOTSPOT_HEIGHT) // 2
        return [
            (i * slot + HOTSPOT_MARGIN, top, (i + 1) * slot - HOTSPOT_MARGIN, top + HOTSPOT_HEIGHT)
            for i in range(count)
        ]

    def _extended_text_interaction(self, question: Question, body: ET.Element, response_id: str) -> List[ET.Element]:
        self._add_stimulus(body, question)
        expected = SHORT_ANSWER_EXPECTED_LENGTH if question.type == "short_answer" else ESSAY_EXPECTED_LENGTH
        interaction = ET.SubElement(body, "extendedTextInteraction", responseIdentifier=response_id)
        interaction.set("expectedLength", str(expected))

        prompt = strip_markup(question.instructor_stimulus)
        if prompt:
            ET.SubElement(interaction, "prompt").text = prompt

        return [_response_declaration(response_id, "single", "string")]

# =============================================================================
# Manifest
# =============================================================================

def manifest_keywords(metadata: ExportMetadata) -> List[str]:
    """Subject, topic, difficulty, manual tags and tutor initials, deduplicated"""
    candidates = [
        metadata.subject,
        metadata.topic,
        translate_difficulty(metadata.difficulty, metadata.language),
        *generate_manual_tags(metadata),
        metadata.tutor_initials,
    ]
    keywords: List[str] = []
    for candidate in candidates:
        keyword = (candidate or "").strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords

def build_manifest(builder: QtiItemBuilder, question_count: int,
                   now: Optional[datetime] = None) -> ET.Element:
    """imsmanifest.xml listing one resource per item file"""
    metadata = builder.metadata
    profile = builder.profile
    language = metadata.language or "en"
    now = now or datetime.now()

    root = ET.Element("manifest")
    root.set("xmlns", IMSCP_NAMESPACE)
    root.set("xmlns:imsmd", IMSMD_NAMESPACE)
    root.set("xmlns:imsqti", profile["namespace"])
    root.set("xmlns:xsi", XSI_NAMESPACE)
    root.set("identifier", f"manifest_{builder.timestamp}_0")
    root.set("xsi:schemaLocation", " ".join([
        IMSCP_NAMESPACE, profile["cp_schema"],
        IMSMD_NAMESPACE, IMSMD_SCHEMA,
        profile["namespace"], profile["schema"],
    ]))

    manifest_metadata = ET.SubElement(root, "metadata")
    ET.SubElement(manifest_metadata, "schema").text = f"QTI {builder.version}"
    ET.SubElement(manifest_metadata, "schemaversion").text = builder.version

    general = ET.SubElement(ET.SubElement(manifest_metadata, "imsmd:lom"), "imsmd:general")

    def langstring(parent: ET.Element, text: str) -> None:
        element = ET.SubElement(parent, "imsmd:langstring")
        element.set("xml:lang", language)
        element.text = text

    langstring(ET.SubElement(general, "imsmd:title"), f"{metadata.subject} - {metadata.topic}")
    langstring(ET.SubElement(general, "imsmd:description"),
               f"Generated with {settings.BRAND_NAME} - {now.isoformat()}")
    for keyword in manifest_keywords(metadata):
        langstring(ET.SubElement(general, "imsmd:keyword"), keyword)

    ET.SubElement(root, "organizations")
    resources = ET.SubElement(root, "resources")
    for index in range(question_count):
        href = item_filename(index)
        resource = ET.SubElement(resources, "resource")
        resource.set("identifier", builder.item_identifier(index))
        resource.set("type", profile["resource_type"])
        resource.set("href", href)
        ET.SubElement(resource, "file", href=href)

    return root

# =============================================================================
# Package
# =============================================================================

def item_filename(index: int) -> str:
    return f"item_{index + 1}.xml"

def build_qti_files(questions: List[Question], metadata: ExportMetadata, version: str = "2.1",
                    inspera: bool = False, now: Optional[datetime] = None) -> List[Tuple[str, bytes]]:
    """Manifest first, then one item file per question"""
    now = now or datetime.now()
    builder = QtiItemBuilder(metadata, version, inspera, timestamp=int(now.timestamp() * 1000))

    files = [(MANIFEST_FILENAME, _serialize(build_manifest(builder, len(questions), now)))]
    for index, question in enumerate(questions):
        files.append((item_filename(index), _serialize(builder.build(question, index))))
    return files

def export_to_qti(questions: List[Question], metadata: ExportMetadata, version: str = "2.1",
                  inspera: bool = False, now: Optional[datetime] = None) -> bytes:
    """QTI package as ZIP bytes"""
    files = build_qti_files(questions, metadata, version, inspera, now)
    logger.info(f"Packaging {len(files) - 1} QTI {normalize_version(version)} items"
                f"{' (Inspera)' if inspera else ''}")

    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files:
            archive.writestr(name, content)
    return buffer.getvalue()

def qti_filename(metadata: ExportMetadata, version: str = "2.1", inspera: bool = False,
                 now: Optional[datetime] = None) -> str:
    version_tag = normalize_version(version).replace(".", "")
    flavour = "_inspera" if inspera else ""
    return f"qti{version_tag}{flavour}_{slugify(metadata.subject)}_{export_date(now)}.zip"

