import pytest

from gigalaunch.parameters import LaunchParameters, LAUNCH_PARAMETERS, replace


def test_defaults():

    params = LaunchParameters()
    assert all(value == "null" for value in params.to_dict().values())
    assert set(params.to_dict().keys()) == set(LAUNCH_PARAMETERS)

    assert replace(params, "--username ${auth_player_name}") == "--username null"
    assert replace(params, "${launcher_name}/${launcher_version}") == "null/null"


def test_replace():

    params = LaunchParameters(auth_player_name="Steve", version_name="1.20")

    assert replace(params, "--username ${auth_player_name}") == "--username Steve"
    assert replace(params, "${version_name}.jar") == "1.20.jar"
    assert replace(params, "${auth_player_name}:${version_name}:${auth_player_name}") == "Steve:1.20:Steve"
    assert replace(params, "no placeholder") == "no placeholder"
    assert replace(params, "") == ""


def test_replace_unknown():

    params = LaunchParameters(version_name="1.20")

    assert replace(params, "${unknown_param}") == "${unknown_param}"
    assert replace(params, "${unknown_param}/${version_name}") == "${unknown_param}/1.20"
    assert replace(params, "${version_name") == "${version_name"
    assert replace(params, "$version_name") == "$version_name"


def test_replace_unclosed():

    params = LaunchParameters(version_name="1.20")

    assert replace(params, "${${version_name}}") == "${1.20}"
    assert replace(params, "-Dx=${ -Dv=${version_name}") == "-Dx=${ -Dv=1.20"
    assert replace(params, "${$version_name}") == "${$version_name}"


def test_replace_not_recursive():

    params = LaunchParameters(auth_player_name="${version_name}", version_name="1.20")
    assert replace(params, "${auth_player_name}") == "${version_name}"


def test_replace_list():

    params = LaunchParameters(classpath="a.jar:b.jar", natives_directory="/tmp/natives")
    assert params.replace_list([
        "-Djava.library.path=${natives_directory}",
        "-cp",
        "${classpath}",
    ]) == ["-Djava.library.path=/tmp/natives", "-cp", "a.jar:b.jar"]


def test_assign():

    params = LaunchParameters()
    params.auth_uuid = "0123"
    assert params.replace("${auth_uuid}") == "0123"

    with pytest.raises(AttributeError):
        params.unknown_param = "foo"

    with pytest.raises(TypeError):
        LaunchParameters(unknown_param="foo")
