import io

from actkit.draw import Drawing, Style, new_pen


def test_arrow_drawing(monkeypatch):
    monkeypatch.delenv("CLICOLOR", raising=False)
    pen = new_pen(Style.NO_LINE, 97)
    arrow = pen.draw_arrow()
    assert arrow.width == 1
    assert "\u2b07" in str(arrow)
    assert str(arrow).startswith("\x1b[97m")
    assert str(arrow).endswith("\x1b[0m")


def test_pen_default_colors(monkeypatch):
    monkeypatch.delenv("CLICOLOR", raising=False)
    pen = new_pen(Style.SINGLE_LINE, 96)
    assert pen.color == 96
    assert pen.bgcolor == 49


def test_pen_colors_disabled(monkeypatch):
    monkeypatch.setenv("CLICOLOR", "0")
    pen = new_pen(Style.SINGLE_LINE, 96)
    assert pen.color == 0
    assert pen.bgcolor == 0


def test_boxes_contain_labels_and_borders(monkeypatch):
    monkeypatch.delenv("CLICOLOR", raising=False)
    pen = new_pen(Style.SINGLE_LINE, 96)
    text = str(pen.draw_boxes("build", "test"))
    lines = text.split("\n")
    assert lines[-1] == ""
    assert len(lines) == 4
    assert "\u2502 build \u2502" in lines[1]
    assert "\u2502 test \u2502" in lines[1]
    assert "\u256d" in lines[0] and "\u256e" in lines[0]
    assert "\u2570" in lines[2] and "\u256f" in lines[2]


def test_box_width_is_additive():
    pen = new_pen(Style.DOUBLE_LINE, 96)
    both = pen.draw_boxes("alpha", "be")
    assert both.width == pen.draw_boxes("alpha").width + pen.draw_boxes("be").width


def test_wider_label_gives_wider_box():
    pen = new_pen(Style.DASHED_LINE, 96)
    assert pen.draw_boxes("longer-label").width > pen.draw_boxes("x").width


def test_draw_without_padding_when_too_narrow():
    drawing = new_pen(Style.SINGLE_LINE, 96).draw_boxes("job")
    out = io.StringIO()
    drawing.draw(out, 0)
    assert out.getvalue() == str(drawing)


def test_draw_centres_lines():
    drawing = new_pen(Style.SINGLE_LINE, 96).draw_boxes("job")
    out = io.StringIO()
    drawing.draw(out, drawing.width + 10)
    written = out.getvalue().split("\n")
    original = str(drawing).split("\n")
    assert written == ["     " + line if line else line for line in original]


def test_draw_skips_empty_lines():
    out = io.StringIO()
    Drawing("a\n\nb\n", 1).draw(out, 1)
    assert out.getvalue() == "a\nb\n"