"""
Tests for the QTI 2.1 / 2.2 package encoder
"""
import io
import xml.etree.ElementTree as ET
import zipfile

import pytest

from qti_export import (
    IMSCP_NAMESPACE, IMSMD_NAMESPACE, QTI_VERSIONS,
    QtiItemBuilder, export_to_qti, build_qti_files, qti_filename, to_identifier, normalize_version
)

NS = {"qti": QTI_VERSIONS["2.1"]["namespace"]}
NS22 = {"qti": QTI_VERSIONS["2.2"]["namespace"]}

def _read_package(content):
    """Parse every XML file of a ZIP package"""
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        assert archive.testzip() is None
        return {name: ET.fromstring(archive.read(name)) for name in archive.namelist()}

def _item(question, metadata, version="2.1", inspera=False):
    builder = QtiItemBuilder(metadata, version, inspera, timestamp=1000)
    return ET.fromstring(ET.tostring(builder.build(question, 0)))

def _declarations(item, ns=NS):
    return item.findall("qti:responseDeclaration", ns)

def test_package_contents(make_question, true_false_question, metadata, now):
    files = _read_package(export_to_qti([make_question(), true_false_question], metadata, "2.1", now=now))
    assert sorted(files) == ["imsmanifest.xml", "item_1.xml", "item_2.xml"]
    assert files["item_1.xml"].tag == f"{{{NS['qti']}}}assessmentItem"

def test_manifest_references_item_identifiers(make_question, metadata, now):
    files = _read_package(export_to_qti([make_question(), make_question()], metadata, now=now))
    manifest = files["imsmanifest.xml"]
    cp = {"cp": IMSCP_NAMESPACE}

    resources = manifest.findall("cp:resources/cp:resource", cp)
    assert [r.get("href") for r in resources] == ["item_1.xml", "item_2.xml"]
    for resource in resources:
        item = files[resource.get("href")]
        assert resource.get("identifier") == item.get("identifier")
        assert resource.get("type") == "imsqti_item_xmlv2p1"
        assert resource.find("cp:file", cp).get("href") == resource.get("href")

    timestamp = int(now.timestamp() * 1000)
    assert manifest.get("identifier") == f"manifest_{timestamp}_0"
    assert files["item_2.xml"].get("identifier") == f"item_{timestamp}_1"

def test_manifest_keywords(make_question, metadata_sv, now):
    files = _read_package(export_to_qti([make_question()], metadata_sv, now=now))
    general = files["imsmanifest.xml"].find(".//imsmd:general", {"imsmd": IMSMD_NAMESPACE})
    keywords = [
        element.text for element in general.findall("imsmd:keyword/imsmd:langstring", {"imsmd": IMSMD_NAMESPACE})
    ]
    assert keywords == ["Cell Biology", "Mitokondrier", "Medel", "BIO101", "PM"]

def test_multiple_response_cardinality(make_question, metadata):
    question = make_question(
        type="multiple_response",
        options=[{"label": "A", "value": "2"}, {"label": "B", "value": "3"}, {"label": "C", "value": "4"}],
        correctAnswer=["A", "C"],
    )
    item = _item(question, metadata)

    interaction = item.find(".//qti:choiceInteraction", NS)
    assert interaction.get("maxChoices") == "2"
    declaration = _declarations(item)[0]
    assert declaration.get("cardinality") == "multiple"
    assert declaration.get("baseType") == "identifier"
    assert [v.text for v in declaration.findall("qti:correctResponse/qti:value", NS)] == ["A", "C"]

def test_true_false_is_single_choice(true_false_question, metadata):
    item = _item(true_false_question, metadata)
    assert item.find(".//qti:choiceInteraction", NS).get("maxChoices") == "1"
    assert _declarations(item)[0].get("cardinality") == "single"
    choices = item.findall(".//qti:simpleChoice", NS)
    assert [(c.get("identifier"), c.text) for c in choices] == [("A", "True"), ("B", "False")]

def test_outcomes_and_processing(make_question, metadata):
    item = _item(make_question(score=3), metadata)
    outcomes = {o.get("identifier"): o for o in item.findall("qti:outcomeDeclaration", NS)}
    assert set(outcomes) == {"SCORE", "MAXSCORE"}
    assert outcomes["MAXSCORE"].find("qti:defaultValue/qti:value", NS).text == "3"
    assert item.find("qti:responseProcessing", NS).get("template") == QTI_VERSIONS["2.1"]["template"]

def test_qti22_adds_feedback(make_question, metadata):
    item = _item(make_question(), metadata, version="2.2")
    assert item.tag == f"{{{NS22['qti']}}}assessmentItem"
    identifiers = [o.get("identifier") for o in item.findall("qti:outcomeDeclaration", NS22)]
    assert identifiers == ["SCORE", "MAXSCORE", "FEEDBACK"]

def test_text_is_escaped(make_question, metadata, now):
    question = make_question(stimulus="Is 3 < 5 & 5 > 3?")
    raw = dict(build_qti_files([question], metadata, now=now))["item_1.xml"].decode("utf-8")
    assert "3 &lt; 5 &amp; 5 &gt; 3" in raw
    item = ET.fromstring(raw.encode("utf-8"))
    assert item.find("qti:itemBody/qti:p", NS).text == "Is 3 < 5 & 5 > 3?"

def test_quotes_survive_serialization(make_question, metadata, now):
    question = make_question(stimulus="He said \"it's fine\"")
    raw = dict(build_qti_files([question], metadata, inspera=True, now=now))["item_1.xml"].decode("utf-8")
    assert 'title="He said &quot;it\'s fine&quot;"' in raw

    item = ET.fromstring(raw.encode("utf-8"))
    assert item.get("title") == "He said \"it's fine\""
    assert item.find("qti:itemBody/qti:p", NS).text == "He said \"it's fine\""

def test_fill_blank_with_placeholders(make_question, metadata):
    question = make_question(type="fill_blank", options=None,
                             stimulus="The [___] is red and [_____].", correctAnswer=["apple", "round"])
    item = _item(question, metadata)

    entries = item.findall(".//qti:textEntryInteraction", NS)
    assert [e.get("responseIdentifier") for e in entries] == ["response_1000_0_0", "response_1000_0_1"]
    declarations = _declarations(item)
    assert [d.get("baseType") for d in declarations] == ["string", "string"]
    assert [d.find("qti:correctResponse/qti:value", NS).text for d in declarations] == ["apple", "round"]

    paragraph = item.find("qti:itemBody/qti:p", NS)
    assert paragraph.text == "The "
    assert entries[0].tail == " is red and "

def test_fill_blank_without_placeholders(make_question, metadata):
    question = make_question(type="clozetext", options=None, stimulus="Name two noble gases.",
                             correctAnswer=["Helium", "Neon"])
    item = _item(question, metadata)
    assert len(item.findall(".//qti:textEntryInteraction", NS)) == 2
    assert item.find("qti:itemBody/qti:p", NS).text == "Name two noble gases."

def test_inline_choice(make_question, metadata):
    question = make_question(
        type="clozedropdown",
        stimulus="Water boils at [___] degrees at [___] level.",
        options=[{"label": "temp", "value": "90, 100, 110"}, {"label": "place", "value": "sea, mountain"}],
        correctAnswer=["100", "sea"],
    )
    item = _item(question, metadata)
    interactions = item.findall(".//qti:inlineChoiceInteraction", NS)
    assert len(interactions) == 2
    assert [c.text for c in interactions[0].findall("qti:inlineChoice", NS)] == ["90", "100", "110"]

    correct = [d.find("qti:correctResponse/qti:value", NS).text for d in _declarations(item)]
    assert correct == ["gap0_choice1", "gap1_choice0"]

def test_inline_choice_appends_gaps_for_unmarked_options(make_question, metadata):
    question = make_question(
        type="clozedropdown",
        stimulus="A [___] B [___] C",
        options=[{"label": "g1", "value": "x, y"}, {"label": "g2", "value": "p, q"},
                 {"label": "g3", "value": "m, n"}],
        correctAnswer=["x", "q", "n"],
    )
    item = _item(question, metadata)
    assert len(item.findall(".//qti:inlineChoiceInteraction", NS)) == 3

    declarations = _declarations(item)
    assert len(declarations) == 3
    correct = [d.find("qti:correctResponse/qti:value", NS).text for d in declarations]
    assert correct == ["gap0_choice0", "gap1_choice1", "gap2_choice1"]

    paragraph = item.find("qti:itemBody/qti:p", NS)
    assert paragraph.text == "A "
    assert paragraph[1].tail == " C "

def test_inline_choice_keeps_surplus_markers_literal(make_question, metadata):
    question = make_question(
        type="clozedropdown",
        stimulus="A [___] B [___] C",
        options=[{"label": "g1", "value": "x, y"}],
        correctAnswer=["y"],
    )
    item = _item(question, metadata)
    assert len(_declarations(item)) == 1
    gap = item.find(".//qti:inlineChoiceInteraction", NS)
    assert gap.tail == " B [___] C"

def test_ordering(make_question, metadata):
    question = make_question(
        type="ordering",
        options=[{"label": "A", "value": "Second"}, {"label": "B", "value": "First"}],
        correctAnswer=["B", "A"],
    )
    declaration = _declarations(_item(question, metadata))[0]
    assert declaration.get("cardinality") == "ordered"
    assert [v.text for v in declaration.findall("qti:correctResponse/qti:value", NS)] == ["B", "A"]

def test_matching_pairs(make_question, metadata):
    question = make_question(
        type="matching",
        options=[{"label": "Sweden", "value": "Stockholm"}, {"label": "Norway", "value": "Oslo"}],
        correctAnswer=[],
    )
    item = _item(question, metadata)
    sets = item.findall(".//qti:matchInteraction/qti:simpleMatchSet", NS)
    assert len(sets) == 2
    assert [c.get("identifier") for c in sets[1]] == ["val_Sweden", "val_Norway"]

    declaration = _declarations(item)[0]
    assert declaration.get("baseType") == "directedPair"
    assert declaration.get("cardinality") == "multiple"
    values = [v.text for v in declaration.findall("qti:correctResponse/qti:value", NS)]
    assert values == ["Sweden val_Sweden", "Norway val_Norway"]

def test_choice_matrix(make_question, metadata):
    question = make_question(
        type="choicematrix",
        options=[{"label": "Fish breathe air", "value": "True, False"},
                 {"label": "Whales are mammals", "value": "True, False"}],
        correctAnswer=["False", "True"],
    )
    item = _item(question, metadata)
    targets = item.findall(".//qti:simpleMatchSet", NS)[1]
    assert [c.text for c in targets] == ["True", "False"]
    values = [v.text for v in _declarations(item)[0].findall("qti:correctResponse/qti:value", NS)]
    assert values == ["Fish_breathe_air val_False", "Whales_are_mammals val_True"]

def test_hottext(make_question, metadata):
    question = make_question(type="tokenhighlight", options=None,
                             stimulus="The mitochondria is the powerhouse.", correctAnswer=["powerhouse"])
    item = _item(question, metadata)
    hottexts = item.findall(".//qti:hottext", NS)
    assert [h.text for h in hottexts] == ["powerhouse."]
    assert item.find(".//qti:hottextInteraction", NS).get("maxChoices") == "1"
    assert _declarations(item)[0].get("cardinality") == "multiple"

def test_hottext_without_matching_words(make_question, metadata, caplog):
    question = make_question(type="tokenhighlight", options=None,
                             stimulus="The cat sat", correctAnswer=["dog"])
    item = _item(question, metadata)
    assert item.find(".//qti:hottextInteraction", NS).get("maxChoices") == "1"
    assert item.findall(".//qti:hottext", NS) == []
    assert "No stimulus word matches the answer key" in caplog.text

def test_gap_match(make_question, metadata):
    question = make_question(
        type="clozeassociation",
        stimulus="[___] is the largest planet.",
        options=[{"label": "J", "value": "Jupiter"}, {"label": "M", "value": "Mars"}],
        correctAnswer=["J"],
    )
    item = _item(question, metadata)
    interaction = item.find(".//qti:gapMatchInteraction", NS)
    assert [g.text for g in interaction.findall("qti:gapText", NS)] == ["Jupiter", "Mars"]
    assert len(interaction.findall(".//qti:gap", NS)) == 1
    values = [v.text for v in _declarations(item)[0].findall("qti:correctResponse/qti:value", NS)]
    assert values == ["J gap_0"]

def test_graphic_gap_match(make_question, metadata):
    question = make_question(
        type="imageclozeassociationV2",
        options=[{"label": "a", "value": "Nucleus"}, {"label": "b", "value": "Membrane"},
                 {"label": "c", "value": "Ribosome"}],
    )
    item = _item(question, metadata)
    hotspots = item.findall(".//qti:associableHotspot", NS)
    assert len(hotspots) == 3
    lefts = [int(h.get("coords").split(",")[0]) for h in hotspots]
    assert lefts == [10, 210, 410]
    assert item.find(".//qti:graphicGapMatchInteraction/qti:object", NS) is not None

@pytest.mark.parametrize("type_id, expected_length", [
    ("longtextV2", "5000"),
    ("short_answer", "500"),
    ("nonexistent_type", "5000"),
    ("hotspot", "5000"),
])
def test_essay_branch(make_question, metadata, type_id, expected_length):
    question = make_question(type=type_id, options=None, instructorStimulus="<b>Mention</b> inertia")
    item = _item(question, metadata)
    interaction = item.find(".//qti:extendedTextInteraction", NS)
    assert interaction.get("expectedLength") == expected_length
    assert interaction.find("qti:prompt", NS).text == "Mention inertia"
    assert _declarations(item)[0].find("qti:correctResponse", NS) is None

def test_option_types_without_options_become_essays(make_question, metadata):
    item = _item(make_question(type="matching", options=None), metadata)
    assert item.find(".//qti:extendedTextInteraction", NS) is not None
    assert item.find(".//qti:matchInteraction", NS) is None

def test_inspera_flavour(make_question, metadata):
    item = _item(make_question(), metadata, inspera=True)
    assert item.get("toolName") == "TentaGen"
    assert item.get("toolVersion")
    assert item.get("title") == "What is the capital of"

    plain = _item(make_question(), metadata)
    assert plain.get("toolName") is None
    assert plain.get("title") == "Science - Sky - Question 1"

def test_qti_filename(metadata, now):
    assert qti_filename(metadata, "2.1", now=now) == "qti21_science_2026-10-19.zip"
    assert qti_filename(metadata, "22", inspera=True, now=now) == "qti22_inspera_science_2026-10-19.zip"

def test_identifiers():
    assert to_identifier("A") == "A"
    assert to_identifier("1st option") == "_1st_option"
    assert to_identifier("") == "id"
    assert normalize_version("qti22") == "2.2"
    with pytest.raises(ValueError):
        normalize_version("3.0")
