import json

import pytest

from inkbridge.importers import JsonPageImporter


def page_document(page=42, strokes=None):
    return {
        "version": "1.0",
        "pageInfo": {"section": 3, "owner": 1012, "book": 3017, "page": page},
        "strokes": strokes if strokes is not None else [
            {
                "id": "s1765313505107",
                "startTime": 1765313505107,
                "endTime": 1765313505342,
                "points": [[10.5, 20.25, 1765313505107], [11.0, 21.5, 1765313505120]],
                "blockUuid": None,
            },
            {
                "startTime": 1765313506000,
                "endTime": 1765313506100,
                "points": [[12.0, 30.0, 1765313506000]],
                "blockUuid": "67cccfe0-c971-411b-a140-fbf49bca1198",
            },
        ],
    }


@pytest.fixture
def export_dir(tmp_path):
    (tmp_path / "B3017_P42.json").write_text(json.dumps(page_document()))
    (tmp_path / "B3017_P43.json").write_text(json.dumps(page_document(page=43, strokes=[])))
    (tmp_path / "broken.json").write_text("{not json")
    (tmp_path / "notes.txt").write_text("ignored")
    return tmp_path


def test_parse_document():
    strokes = JsonPageImporter.parse_document(page_document())

    assert [s.stroke_id for s in strokes] == ["s1765313505107", "s1765313506000"]
    first = strokes[0]
    assert (first.book, first.page) == (3017, 42)
    assert first.samples[1].y == 21.5
    assert first.samples[0].timestamp == 1765313505107
    assert first.block_ref is None
    assert strokes[1].block_ref == "67cccfe0-c971-411b-a140-fbf49bca1198"


def test_parse_document_requires_page_info():
    with pytest.raises(ValueError):
        JsonPageImporter.parse_document({"strokes": []})


def test_parse_document_requires_stroke_identity():
    document = page_document(strokes=[{"points": [[1, 2, 3]]}])
    with pytest.raises(ValueError):
        JsonPageImporter.parse_document(document)


def test_directory_import_skips_broken_files(export_dir):
    importer = JsonPageImporter(str(export_dir))

    strokes = importer.get_all_strokes()

    assert len(strokes) == 2
    assert {s.page for s in strokes} == {42}


def test_single_file_import(export_dir):
    importer = JsonPageImporter(str(export_dir / "B3017_P42.json"))
    assert len(importer.get_all_strokes()) == 2


def test_strokes_by_page(export_dir):
    importer = JsonPageImporter(str(export_dir))

    by_page = importer.get_strokes_by_page()

    assert len(by_page) == 1
    page, strokes = next(iter(by_page.items()))
    assert (page.book, page.page) == (3017, 42)
    assert len(strokes) == 2


def test_missing_source(tmp_path):
    assert JsonPageImporter(str(tmp_path / "missing")).get_all_strokes() == []
