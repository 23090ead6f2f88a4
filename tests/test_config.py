import pytest

from clifbuild.config import ConfigError, get_bool, get_value, load_config_file


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.txt"
    path.write_text(
        "# a comment line\n"
        "\n"
        "testsuite.no_sysroot\n"
        "  testsuite.base_sysroot   # trailing comment\n"
        "host = x86_64-unknown-linux-gnu\n"
        "#testsuite.extended_sysroot\n"
        "flag_with_value=1\n"
        "target\n"
        "dup=a\n"
        "dup=b\n"
    )
    return path


def test_load_config_file_entries(config_path):
    entries = load_config_file(config_path)
    assert entries == [
        ("testsuite.no_sysroot", None),
        ("testsuite.base_sysroot", None),
        ("host", "x86_64-unknown-linux-gnu"),
        ("flag_with_value", "1"),
        ("target", None),
        ("dup", "a"),
        ("dup", "b"),
    ]


def test_get_bool_present(config_path):
    assert get_bool("testsuite.no_sysroot", config_path) is True
    assert get_bool("testsuite.base_sysroot", config_path) is True


def test_get_bool_commented_out_is_false(config_path):
    assert get_bool("testsuite.extended_sysroot", config_path) is False


def test_get_bool_with_value_is_error(config_path):
    with pytest.raises(ConfigError):
        get_bool("flag_with_value", config_path)


def test_get_value(config_path):
    assert get_value("host", config_path) == "x86_64-unknown-linux-gnu"
    assert get_value("absent", config_path) is None


def test_get_value_missing_value(config_path):
    with pytest.raises(ConfigError, match="missing value"):
        get_value("target", config_path)


def test_get_value_multiple_values(config_path):
    with pytest.raises(ConfigError, match="multiple values"):
        get_value("dup", config_path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_file(tmp_path / "nope.txt")