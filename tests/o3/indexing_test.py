import pytest

from polynomials4ml.o3 import sizeY, sizeP, index_y, idx2lm, index_p, idx2lm_p


def test_sizes() -> None:
    assert [sizeY(L) for L in range(4)] == [1, 4, 9, 16]
    assert [sizeP(L) for L in range(4)] == [1, 3, 6, 10]


def test_index_y_order() -> None:
    lm = [(l, m) for l in range(5) for m in range(-l, l + 1)]
    assert [index_y(l, m) for l, m in lm] == list(range(sizeY(4)))


def test_index_y_roundtrip() -> None:
    assert idx2lm(0) == (0, 0)
    for i in range(sizeY(12)):
        assert index_y(*idx2lm(i)) == i


def test_index_p_rows() -> None:
    for l in range(10):
        row = [index_p(l, m) for m in range(l + 1)]
        assert row == list(range(row[0], row[0] + l + 1))
    assert index_p(10, 10) == sizeP(10) - 1


def test_index_p_roundtrip() -> None:
    assert idx2lm_p(0) == (0, 0)
    for i in range(sizeP(30)):
        l, m = idx2lm_p(i)
        assert 0 <= m <= l
        assert index_p(l, m) == i


@pytest.mark.parametrize("l, m", [(-1, 0), (1, 2), (2, -3)])
def test_index_y_invalid(l, m) -> None:
    with pytest.raises(ValueError):
        index_y(l, m)


@pytest.mark.parametrize("l, m", [(1, -1), (1, 2), (-1, 0)])
def test_index_p_invalid(l, m) -> None:
    with pytest.raises(ValueError):
        index_p(l, m)


def test_negative_index() -> None:
    with pytest.raises(ValueError):
        idx2lm(-1)
    with pytest.raises(ValueError):
        idx2lm_p(-1)
