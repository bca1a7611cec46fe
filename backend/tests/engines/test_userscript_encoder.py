"""Unit tests for engines.userscript.encoder."""

import random
from unittest.mock import patch

import pytest

from app.engines.userscript import (
    EncodedScript,
    PayloadIntegrityError,
    ScriptEncoder,
    encode_script,
    verify_payload,
)
from app.engines.userscript.shims import SHIM_TABLE
from app.models_script import RunAtEnum
from tests.utils.script import FixedRandom, make_script

TOKEN = "AbCdEfGhIjKlMnOp"
HELPER = 'function ScriptInject_decode(src) {return src.replaceAll("AbCdEfGhIjKlMnOp", "`");};'


def _encoder(*tokens: str) -> ScriptEncoder:
    return ScriptEncoder(rng=FixedRandom(*(tokens or (TOKEN,))))


class TestAlreadyEncoded:
    def test_returns_none(self) -> None:
        assert encode_script(make_script("x", encoded=True)) is None

    def test_returns_none_whatever_the_other_fields(self) -> None:
        script = make_script(
            "a`b",
            encoded=True,
            run_at=RunAtEnum.IDLE,
            require=["https://a"],
            grant=["GM_log", "GM_nope"],
        )
        assert ScriptEncoder().encode(script) is None
        assert ScriptEncoder().encode_with_details(script) is None


class TestIdentity:
    def test_start_without_require_or_grant(self) -> None:
        assert encode_script(make_script("alert(1)")) == "alert(1)"

    def test_blank_require_and_grant_are_inert(self) -> None:
        script = make_script("alert(1)", require=["", ""], grant=[""])
        assert encode_script(script) == "alert(1)"

    def test_script_not_mutated(self) -> None:
        script = make_script("a`b", run_at=RunAtEnum.END, grant=["GM_log"])
        _encoder().encode(script)
        assert script.code == "a`b"
        assert script.encoded is False
        assert script.grant == ["GM_log"]


class TestRunAt:
    def test_end_waits_for_dom_content_loaded_once(self) -> None:
        out = encode_script(make_script("x", run_at=RunAtEnum.END))
        assert out == 'document.addEventListener("DOMContentLoaded",()=>{x},{once:true});'

    def test_idle_waits_for_window_load(self) -> None:
        out = encode_script(make_script("x", run_at=RunAtEnum.IDLE))
        assert out == "window.onload=()=>{x};"


class TestRequire:
    def test_idle_with_one_import(self) -> None:
        out = encode_script(
            make_script("x", run_at=RunAtEnum.IDLE, require=["https://a"])
        )
        assert out == '(async ()=>{await import("https://a");window.onload=()=>{x};})();'

    def test_imports_keep_declaration_order(self) -> None:
        out = encode_script(make_script("x", require=["https://a", "https://b"]))
        assert out == (
            '(async ()=>{await import("https://a");await import("https://b");x})();'
        )

    def test_blank_entries_same_as_removed(self) -> None:
        with_blanks = encode_script(
            make_script("x", require=["", "https://a", "", "https://b", ""])
        )
        without = encode_script(make_script("x", require=["https://a", "https://b"]))
        assert with_blanks == without

    def test_url_is_quoted(self) -> None:
        out = encode_script(make_script("x", require=['https://a/"b']))
        assert 'await import("https://a/\\"b");' in out


class TestGrant:
    def test_log_example(self) -> None:
        out = encode_script(make_script("GM_log('hi')", grant=["GM_log"]))
        assert out == SHIM_TABLE["GM_log"].source + "GM_log('hi')"
        assert out == "const GM_log = console.log.bind(console);GM_log('hi')"

    def test_later_grant_ends_up_first(self) -> None:
        out = encode_script(make_script("x", grant=["GM_log", "unsafeWindow"]))
        assert out == (
            "const unsafeWindow = window;"
            "const GM_log = console.log.bind(console);"
            "x"
        )

    def test_known_grants_emit_no_stub(self) -> None:
        out = encode_script(make_script("x", grant=list(SHIM_TABLE)))
        assert "not implemented" not in out
        for shim in SHIM_TABLE.values():
            assert shim.source in out

    def test_unknown_grant_emits_stub(self) -> None:
        out = encode_script(make_script("x", grant=["GM_xmlhttpRequest"]))
        assert out == (
            "function GM_xmlhttpRequest(...args) "
            '{console.error("GM_xmlhttpRequest is not implemented in ScriptInject yet, '
            'called with", args)};x'
        )

    def test_unknown_grant_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="app.engines.userscript.encoder"):
            encode_script(make_script("x", grant=["GM_nope"]))
        assert "GM_nope" in caplog.text

    def test_blank_entries_same_as_removed(self) -> None:
        with_blanks = encode_script(make_script("x", grant=["", "GM_log", "", "GM_foo"]))
        without = encode_script(make_script("x", grant=["GM_log", "GM_foo"]))
        assert with_blanks == without

    def test_grants_wrap_import_wrapper(self) -> None:
        out = encode_script(
            make_script("x", run_at=RunAtEnum.END, require=["https://a"], grant=["GM_log"])
        )
        assert out == (
            "const GM_log = console.log.bind(console);"
            '(async ()=>{await import("https://a");'
            'document.addEventListener("DOMContentLoaded",()=>{x},{once:true});})();'
        )


class TestBacktickObfuscation:
    def test_no_backtick_no_helper(self) -> None:
        result = ScriptEncoder().encode_with_details(make_script("let a = 'b';"))
        assert result == EncodedScript(payload="let a = 'b';", token=None)
        assert not result.obfuscated
        assert "ScriptInject_decode" not in result.payload
        assert "Function(" not in result.payload

    def test_backticks_replaced_and_helper_first(self) -> None:
        result = _encoder().encode_with_details(make_script("let s = `a${1}`;"))
        assert result.token == TOKEN
        assert result.payload == (
            HELPER
            + "Function(ScriptInject_decode(String.raw`let s = "
            + TOKEN
            + "a${1}"
            + TOKEN
            + ";`))();"
        )

    @pytest.mark.parametrize(
        "code",
        ["`", "a`b`c", "x = `${`nested`}`;", "\\`escaped\\`"],
    )
    def test_exactly_three_backticks(self, code: str) -> None:
        script = make_script(
            code,
            run_at=RunAtEnum.IDLE,
            require=["https://a", ""],
            grant=["GM_addStyle", "GM_addElement", "GM_unknown", ""],
        )
        out = ScriptEncoder().encode(script)
        assert out.count("`") == 3

    def test_helper_outermost_with_all_stages(self) -> None:
        script = make_script(
            "`", run_at=RunAtEnum.END, require=["https://a"], grant=["GM_log"]
        )
        out = _encoder().encode(script)
        assert out.startswith(HELPER + "const GM_log = console.log.bind(console);")
        assert out.endswith(
            '(async ()=>{await import("https://a");'
            'document.addEventListener("DOMContentLoaded",()=>{'
            "Function(ScriptInject_decode(String.raw`" + TOKEN + "`))();"
            "},{once:true});})();"
        )

    def test_token_differs_between_calls(self) -> None:
        encoder = ScriptEncoder(rng=random.Random(1234))
        first = encoder.encode_with_details(make_script("`"))
        second = encoder.encode_with_details(make_script("`"))
        assert first.token != second.token

    def test_collision_rejected_when_enabled(self) -> None:
        other = "ZyXwVuTsRqPoNmLk"
        encoder = ScriptEncoder(
            rng=FixedRandom(TOKEN, other), reject_token_collision=True
        )
        result = encoder.encode_with_details(make_script(f"`{TOKEN}`"))
        assert result.token == other

    def test_collision_kept_when_disabled(self) -> None:
        encoder = ScriptEncoder(
            rng=FixedRandom(TOKEN, "ZyXwVuTsRqPoNmLk"), reject_token_collision=False
        )
        result = encoder.encode_with_details(make_script(f"`{TOKEN}`"))
        assert result.token == TOKEN

    def test_custom_decoder_name(self) -> None:
        encoder = ScriptEncoder(rng=FixedRandom(TOKEN), decoder="my_decode")
        out = encoder.encode(make_script("`"))
        assert out.startswith("function my_decode(src)")
        assert "Function(my_decode(String.raw`" in out


class TestVerifyPayload:
    def test_plain_payload_passes(self) -> None:
        verify_payload(EncodedScript(payload="x", token=None))

    def test_obfuscated_payload_passes(self) -> None:
        verify_payload(_encoder().encode_with_details(make_script("a`b")))

    def test_backtick_in_require_fails(self) -> None:
        result = _encoder().encode_with_details(
            make_script("a`b", require=["https://cdn/`x`.js"])
        )
        with pytest.raises(PayloadIntegrityError, match="5 backticks"):
            verify_payload(result)


@patch("app.engines.userscript.encoder.settings")
def test_token_length_from_settings(mock_settings) -> None:
    mock_settings.ENCODER_TOKEN_LENGTH = 24
    mock_settings.ENCODER_REJECT_TOKEN_COLLISION = False
    mock_settings.ENCODER_DECODE_FUNCTION_NAME = "ScriptInject_decode"
    result = ScriptEncoder().encode_with_details(make_script("`"))
    assert len(result.token) == 24


def test_encode_script_uses_module_level_encoder() -> None:
    from app.engines.userscript import encoder as encoder_module

    assert isinstance(encoder_module._default_encoder, ScriptEncoder)
    with patch.object(
        encoder_module._default_encoder, "encode", return_value="sentinel"
    ) as mock_encode:
        assert encode_script(make_script("x")) == "sentinel"
    mock_encode.assert_called_once()
