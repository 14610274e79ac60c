from actkit.cartesian import cartesian_product


def test_cartesian_product_full():
    data = {
        "foo": [1, 2, 3, 4],
        "bar": ["a", "b", "c"],
        "baz": [False, True],
    }
    output = cartesian_product(data)
    assert len(output) == 24
    for v in output:
        assert len(v) == 3
        assert "foo" in v
        assert "bar" in v
        assert "baz" in v


def test_cartesian_product_unique_combinations():
    data = {"foo": [1, 2, 3, 4], "bar": ["a", "b", "c"], "baz": [False, True]}
    output = cartesian_product(data)
    combos = {(v["foo"], v["bar"], v["baz"]) for v in output}
    assert len(combos) == 24


def test_cartesian_product_with_empty_list():
    data = {"foo": [1, 2, 3, 4], "bar": [], "baz": [False, True]}
    assert len(cartesian_product(data)) == 0


def test_cartesian_product_empty_map():
    assert len(cartesian_product({})) == 0