import io

import pytest
from PIL import Image

from imagine.gif_text import add_text_to_gif, fade_alpha, find_nearest_color

RED = (200, 0, 0)
BLUE = (0, 0, 200)
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
WIDTH = 120
HEIGHT = 80


def _make_gif(frame_count):
    palette = [*RED, *BLUE, *BLACK, *WHITE]
    frames = []
    for number in range(frame_count):
        frame = Image.new("P", (WIDTH, HEIGHT), number % 2)
        frame.putpalette(palette)
        frames.append(frame)
    buffer = io.BytesIO()
    frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=50,
        loop=0,
        optimize=False,
    )
    return buffer.getvalue()


def _frames_rgb(data):
    image = Image.open(io.BytesIO(data))
    result = []
    for index in range(image.n_frames):
        image.seek(index)
        result.append(image.convert("RGB"))
    return image, result


@pytest.fixture(scope="module")
def long_gif():
    return _make_gif(31)


@pytest.fixture(scope="module")
def captioned(long_gif):
    return add_text_to_gif(long_gif, "HI")


@pytest.mark.parametrize("frame_number", [0, 1, 5, 8])
def test_fade_alpha_hidden_before_start(frame_number):
    assert fade_alpha(frame_number) == 0


@pytest.mark.parametrize("frame_number", [28, 29, 30, 100])
def test_fade_alpha_full_at_end(frame_number):
    assert fade_alpha(frame_number) == 255


def test_fade_alpha_rises_through_fade():
    values = [fade_alpha(n) for n in range(9, 29)]
    assert values[0] > 0
    assert all(a < b for a, b in zip(values, values[1:]))
    assert all(0 < v <= 255 for v in values)


def test_find_nearest_color_exact_match():
    colors = [(0, 0, 0), (10, 20, 30), (255, 255, 255)]
    assert find_nearest_color(colors, (10, 20, 30)) == 1


def test_find_nearest_color_empty_palette():
    assert find_nearest_color([], (1, 2, 3)) == 0


def test_find_nearest_color_tie_prefers_first():
    colors = [(5, 5, 5), (5, 5, 5)]
    assert find_nearest_color(colors, (0, 0, 0)) == 0


def test_find_nearest_color_weights_green_over_red():
    colors = [(0, 10, 0), (10, 0, 0)]
    assert find_nearest_color(colors, (0, 0, 0)) == 1


def test_find_nearest_color_weights_red_over_blue():
    colors = [(10, 0, 0), (0, 0, 10)]
    assert find_nearest_color(colors, (0, 0, 0)) == 1


def test_output_keeps_frame_count_and_size(captioned):
    image = Image.open(io.BytesIO(captioned))
    assert image.n_frames == 31
    assert image.size == (WIDTH, HEIGHT)


def test_output_loops_forever_and_keeps_delay(captioned):
    image = Image.open(io.BytesIO(captioned))
    assert image.info["loop"] == 0
    image.seek(3)
    assert image.info["duration"] == 50


def test_hidden_frames_are_unchanged(long_gif, captioned):
    _, original = _frames_rgb(long_gif)
    _, result = _frames_rgb(captioned)
    for number in range(9):
        assert result[number].tobytes() == original[number].tobytes()


def test_last_frame_shows_outlined_text(long_gif, captioned):
    _, original = _frames_rgb(long_gif)
    _, result = _frames_rgb(captioned)
    last = result[30]
    top = set(last.crop((0, 0, WIDTH, 60)).getdata())
    assert WHITE in top
    assert BLACK in top
    assert last.tobytes() != original[30].tobytes()


def test_caption_leaves_bottom_rows_alone(long_gif, captioned):
    _, original = _frames_rgb(long_gif)
    _, result = _frames_rgb(captioned)
    box = (0, 70, WIDTH, HEIGHT)
    for number in (15, 30):
        assert result[number].crop(box).tobytes() == original[number].crop(box).tobytes()


def test_short_gif_round_trips_unchanged():
    data = _make_gif(3)
    _, original = _frames_rgb(data)
    _, result = _frames_rgb(add_text_to_gif(data, "NOPE"))
    assert [f.tobytes() for f in result] == [f.tobytes() for f in original]


def test_rejects_non_gif_data():
    with pytest.raises(ValueError, match="not a GIF"):
        add_text_to_gif(b"definitely not a gif", "HI")


def test_rejects_truncated_gif():
    data = _make_gif(2)
    with pytest.raises(ValueError, match="unexpected end"):
        add_text_to_gif(data[:20], "HI")


def test_missing_font_is_an_error(tmp_path):
    with pytest.raises(ValueError, match="font"):
        add_text_to_gif(_make_gif(2), "HI", tmp_path / "missing.ttf")