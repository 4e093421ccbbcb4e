import json

import pytest

from src.local.options import Options, ServerOptions


def test_defaults_are_used_without_a_file(options):
    options.load()

    assert options.get("memory") == "1024"
    assert options.get("unknown") == ""
    assert not options.contains("alternateJarFile")


def test_saved_options_are_loaded_back(options):
    options.set("memory", 2048)
    options.set("javaArguments", "-XX:+UseG1GC")
    options.save()

    reloaded = Options(path=options.path).load()
    assert reloaded.get_int("memory") == 2048
    assert reloaded.get("javaArguments") == "-XX:+UseG1GC"
    assert json.loads(options.path.read_text())["levelName"] == "world"
    assert not options.path.with_suffix(".tmp").exists()


def test_malformed_file_falls_back_to_defaults(options, caplog):
    options.path.write_text("{not json", encoding="utf-8")

    options.load()

    assert options.get("memory") == "1024"
    assert "Failed to load options file" in caplog.text


def test_non_object_file_is_ignored(options):
    options.path.write_text("[1, 2, 3]", encoding="utf-8")
    assert options.load().get("port") == "25565"


def test_get_int_rejects_non_numbers(options):
    options.set("memory", "lots")
    with pytest.raises(ValueError, match="memory"):
        options.get_int("memory")


def test_contains_ignores_blank_values(options):
    options.set("alternateJarFile", "   ")
    assert not options.contains("alternateJarFile")
    options.set("alternateJarFile", "/opt/server.jar")
    assert options.contains("alternateJarFile")


def test_server_properties_keep_unmanaged_keys(options, tmp_path):
    path = tmp_path / "server.properties"
    path.write_text("#old header\ndifficulty=hard\nserver-port=1\n", encoding="utf-8")
    options.set("port", "25599")
    options.set("motd", "Hello = world")

    ServerOptions(options, path).save()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert "difficulty=hard" in lines
    assert "server-port=25599" in lines
    assert "motd=Hello = world" in lines
    assert "#old header" not in lines
