import pytest

from gigalaunch.rules import Platform, Rule, RuleOs, RuleList, evaluate


def test_platform_matches():

    linux64 = Platform("linux", "x86_64")
    linux32 = Platform("linux", "x86")
    osx_arm = Platform("osx", "arm64")

    assert linux64.matches_os("linux")
    assert not linux64.matches_os("windows")
    assert not linux64.matches_os("freebsd")
    assert not linux64.matches_os(None)

    # The "x86" family matches both 32 and 64 bits runtimes.
    assert linux64.matches_arch("x86")
    assert linux32.matches_arch("x86")
    assert not osx_arm.matches_arch("x86")

    # Unknown identifiers never match and never raise.
    assert not linux64.matches_arch("x86_64")
    assert not linux64.matches_arch("sparc")
    assert not Platform(None, None).matches_os("linux")
    assert not Platform(None, None).matches_arch("x86")


def test_platform_current():
    platform = Platform.current()
    assert platform.os_name in (None, "windows", "linux", "osx")
    assert platform == Platform.current()


def test_empty_constraints(linux, windows):

    # No OS, arch or features constraint: always allowed.
    rules = RuleList([Rule("allow"), Rule("disallow"), Rule("allow", os=RuleOs())])
    for platform in (linux, windows):
        assert rules.evaluate(set(), platform)
        assert rules.evaluate({"foo", "bar"}, platform)

    assert RuleList().evaluate(set(), linux)


def test_os_mismatch(linux, windows):

    rules = RuleList([Rule("allow", os=RuleOs("linux"))])
    assert rules.evaluate(set(), linux)
    assert not rules.evaluate(set(), windows)
    assert not rules.evaluate({"anything"}, windows)


def test_arch(linux):

    assert RuleList([Rule("allow", os=RuleOs(arch="x86"))]).evaluate(set(), linux)
    assert not RuleList([Rule("allow", os=RuleOs(arch="arm64"))]).evaluate(set(), linux)
    assert not RuleList([Rule("allow", os=RuleOs(arch="x86"))]).evaluate(set(), Platform("linux", "arm64"))


def test_features(linux):

    rules = RuleList([Rule("allow", features={"foo": True})])
    assert not rules.evaluate(set(), linux)
    assert rules.evaluate({"foo"}, linux)

    rules = RuleList([Rule("allow", features={"foo": False})])
    assert rules.evaluate(set(), linux)
    assert not rules.evaluate({"foo"}, linux)

    rules = RuleList([Rule("allow", features={"foo": True, "bar": True})])
    assert not rules.evaluate({"foo"}, linux)
    assert rules.evaluate({"foo", "bar", "baz"}, linux)


def test_conjunction(linux, windows):

    rules = RuleList([
        Rule("allow", os=RuleOs("linux")),
        Rule("allow", features={"foo": True}),
    ])

    assert rules.evaluate({"foo"}, linux)
    assert not rules.evaluate(set(), linux)
    assert not rules.evaluate({"foo"}, windows)

    # The action is never used to invert the result.
    assert evaluate([Rule("disallow", os=RuleOs("linux"))], set(), linux)
    assert not evaluate([Rule("disallow", os=RuleOs("linux"))], set(), windows)


def test_default_platform():

    from gigalaunch.rules import current_platform

    rules = RuleList([Rule("allow", os=RuleOs(current_platform.os_name))])
    assert rules.evaluate(set()) == rules.evaluate(set(), current_platform)


def test_from_json(linux):

    rules = RuleList.from_json([
        {"action": "allow"},
        {"action": "allow", "os": {"name": "linux", "arch": "x86"}},
        {"action": "allow", "features": {"has_custom_resolution": True}},
    ], "test:")

    assert len(rules) == 3
    assert list(rules)[1].os == RuleOs("linux", "x86")
    assert rules.feature_names() == {"has_custom_resolution"}
    assert rules.evaluate({"has_custom_resolution"}, linux)
    assert not rules.evaluate(set(), linux)

    # Unknown OS names are kept and simply never match.
    rules = RuleList.from_json([{"action": "allow", "os": {"name": "haiku"}}], "test:")
    assert not rules.evaluate(set(), linux)


@pytest.mark.parametrize("value,match", [
    ({"action": "allow"}, "test: must be a list"),
    ([42], "test:/0 must be an object"),
    ([{}], "test:/0/action must be a string"),
    ([{"action": "allow", "os": "linux"}], "test:/0/os must be an object"),
    ([{"action": "allow", "os": {"name": 1}}], "test:/0/os/name must be a string"),
    ([{"action": "allow", "features": []}], "test:/0/features must be an object"),
    ([{"action": "allow", "features": {"foo": 1}}], "test:/0/features/foo must be a boolean"),
])
def test_from_json_invalid(value, match):
    with pytest.raises(ValueError, match=match):
        RuleList.from_json(value, "test:")
