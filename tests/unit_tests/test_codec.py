import pytest

from attachgate.codec import (
    NAMED_RESERVED_EXTENSIONS,
    RESERVED_EXTENSIONS,
    decode,
    encode,
    extension_of,
    is_reserved,
)


class TestReservedSet:
    def test_contains_named_formats(self):
        assert is_reserved("klarf")
        assert is_reserved("STIF")

    @pytest.mark.parametrize("ext", ["000", "001", "025", "100", "999"])
    def test_contains_every_three_digit_number(self, ext: str):
        assert is_reserved(ext)

    @pytest.mark.parametrize("ext", ["1", "25", "1000", "pdf", "doli", ""])
    def test_rejects_other_extensions(self, ext: str):
        assert not is_reserved(ext)

    def test_numeric_entries_are_synthetic(self):
        synthetic = [ext for ext in RESERVED_EXTENSIONS if ext.synthetic]
        assert len(synthetic) == 1000
        assert all(not ext.synthetic for ext in NAMED_RESERVED_EXTENSIONS)


class TestEncode:
    @pytest.mark.parametrize(
        ("original", "expected"),
        [
            ("report.klarf", "report#$klarf.DOLI"),
            ("result.025", "result#$025.DOLI"),
            ("wafer.map.stif", "wafer.map#$stif.DOLI"),
            ("LOT.KLARF", "LOT#$klarf.DOLI"),
        ],
    )
    def test_reserved_extension_is_rewritten(self, original: str, expected: str):
        assert encode(original) == expected

    @pytest.mark.parametrize("name", ["doc.pdf", "notes.txt", "README", "archive.tar.gz"])
    def test_other_names_unchanged(self, name: str):
        assert encode(name) == name


class TestDecode:
    def test_encoded_name_is_restored(self):
        assert decode("report#$klarf.DOLI") == "report.klarf"

    def test_suffix_is_case_insensitive(self):
        assert decode("result#$025.doli") == "result.025"

    @pytest.mark.parametrize("name", ["doc.pdf", "report#klarf.DOLI", "#$klarf.DOLI", "a#$b.c.DOLI"])
    def test_non_matching_names_unchanged(self, name: str):
        assert decode(name) == name


@pytest.mark.parametrize(
    "name", ["report.klarf", "result.000", "result.999", "x.y.stif", "with space.042"]
)
def test_reserved_names_round_trip(name: str):
    assert decode(encode(name)) == name


@pytest.mark.parametrize("name", ["doc.pdf", "image.PNG", "noext", "a.b.c"])
def test_non_reserved_names_are_fixed_points(name: str):
    assert encode(name) == name
    assert decode(name) == name


def test_already_encoded_name_is_not_encoded_again():
    stored = "report#$klarf.DOLI"
    assert encode(stored) == stored
    assert decode(encode(stored)) == "report.klarf"


@pytest.mark.parametrize(
    ("name", "expected"), [("a.PDF", "pdf"), ("a.b.Klarf", "klarf"), ("README", ""), ("x.", "")]
)
def test_extension_of(name: str, expected: str):
    assert extension_of(name) == expected
