import pytest

from imagine.parse_query import GifConfig, parse_gif_path


def test_should_return_base_case():
    result = parse_gif_path("/base.gif")
    assert result.file_name == "base"
    assert result.text == "base"
    assert result.bucket_path == "base.gif"


def test_parse_query():
    result = parse_gif_path("/hello world test.png")
    assert result.file_name == "hello_world_test"
    assert result.text == "HELLO WORLD TEST"
    assert result.bucket_path == "generated/hello_world_test.gif"


def test_parse_query_with_long_string():
    result = parse_gif_path("/this is a very long string that should be truncated.png")
    assert len(result.file_name) == 30
    assert result.file_name == "this_is_a_very_long_string_tha"


def test_parse_query_with_extra_spaces():
    result = parse_gif_path("/  hello   world  .png")
    assert result.file_name == "hello___world"
    assert result.text == "HELLO   WORLD"


def test_correctly_handles_empty():
    result = parse_gif_path("/  .gif")
    assert result.file_name == ""
    assert result.text == ""
    assert result.bucket_path == "generated/.gif"


def test_handles_emoji():
    result = parse_gif_path("/😀.gif")
    assert result.file_name == "😀"
    assert result.text == "😀"
    assert result.bucket_path == "generated/😀.gif"


def test_handles_mixed_emoji_and_text():
    result = parse_gif_path("/hello 😀 world.gif")
    assert result.file_name == "hello_😀_world"
    assert result.text == "HELLO 😀 WORLD"
    assert result.bucket_path == "generated/hello_😀_world.gif"


def test_result_is_a_gif_config_value():
    assert parse_gif_path("/hello world test.png") == GifConfig(
        bucket_path="generated/hello_world_test.gif",
        file_name="hello_world_test",
        text="HELLO WORLD TEST",
    )


@pytest.mark.parametrize("path", ["", "/", "/a"])
def test_short_paths_give_empty_names(path):
    result = parse_gif_path(path)
    assert result.file_name == ""
    assert result.bucket_path == "generated/.gif"


def test_uppercase_input_is_lowered_in_file_name():
    result = parse_gif_path("/Hello World.gif")
    assert result.file_name == "hello_world"
    assert result.text == "HELLO WORLD"