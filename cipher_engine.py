"""
Cipher Engine - Extracts decipher actions from the player script and applies them

Any object with ``extract_actions`` and ``decipher`` can stand in for the
default engine; the resolver only depends on the CipherEngine protocol.
"""
import logging
import re
from typing import List, Optional, Protocol

from models import TransformProgram

logger = logging.getLogger(__name__)


class CipherEngine(Protocol):
    def extract_actions(self, script_body: str) -> Optional[TransformProgram]:
        ...

    def decipher(self, cipher_value: str, program: TransformProgram) -> Optional[str]:
        ...


# Building blocks for matching minified player JS
JS_VAR = r"[a-zA-Z_\$][a-zA-Z_0-9\$]*"
JS_SINGLE_QUOTE = r"'[^'\\]*(?:\\[\s\S][^'\\]*)*'"
JS_DOUBLE_QUOTE = r'"[^"\\]*(?:\\[\s\S][^"\\]*)*"'
JS_QUOTE = rf"(?:{JS_SINGLE_QUOTE}|{JS_DOUBLE_QUOTE})"
JS_KEY = rf"(?:{JS_VAR}|{JS_QUOTE})"
JS_PROP = rf"(?:\.{JS_VAR}|\[{JS_QUOTE}\])"
JS_EMPTY = r"(?:''|\"\")"

REVERSE_BODY = r":function\(a\)\{(?:return )?a\.reverse\(\)\}"
SLICE_BODY = r":function\(a,b\)\{return a\.slice\(b\)\}"
SPLICE_BODY = r":function\(a,b\)\{a\.splice\(0,b\)\}"
SWAP_BODY = (
    r":function\(a,b\)\{var c=a\[0\];a\[0\]=a\[b(?:%a\.length)?\];"
    r"a\[b(?:%a\.length)?\]=c(?:;return a)?\}"
)

ACTIONS_OBJ_RE = re.compile(
    rf"var ({JS_VAR})=\{{((?:(?:"
    rf"{JS_KEY}{REVERSE_BODY}|{JS_KEY}{SLICE_BODY}|"
    rf"{JS_KEY}{SPLICE_BODY}|{JS_KEY}{SWAP_BODY}"
    rf"),?\r?\n?)+)\}};"
)
ACTIONS_FUNC_RE = re.compile(
    rf"function(?: {JS_VAR})?\(a\)\{{"
    rf"a=a\.split\({JS_EMPTY}\);\s*"
    rf"((?:(?:a=)?{JS_VAR}{JS_PROP}\(a,\d+\);)+)"
    rf"return a\.join\({JS_EMPTY}\)\}}"
)

REVERSE_KEY_RE = re.compile(rf"(?:^|,)({JS_KEY}){REVERSE_BODY}", re.M)
SLICE_KEY_RE = re.compile(rf"(?:^|,)({JS_KEY}){SLICE_BODY}", re.M)
SPLICE_KEY_RE = re.compile(rf"(?:^|,)({JS_KEY}){SPLICE_BODY}", re.M)
SWAP_KEY_RE = re.compile(rf"(?:^|,)({JS_KEY}){SWAP_BODY}", re.M)


def _helper_key(pattern: re.Pattern, obj_body: str) -> Optional[str]:
    match = pattern.search(obj_body)
    if not match:
        return None
    return match.group(1).strip("'\"")


class PatternCipherEngine:
    """
    Default engine for the classic signature scrambler.

    The player defines a helper object of reverse/slice/splice/swap functions
    and a function that splits the signature, calls helpers in sequence and
    joins it back. Actions serialize as space separated tokens:
    ``r`` reverse, ``sN`` slice, ``pN`` splice, ``wN`` swap.
    """

    def extract_actions(self, script_body: str) -> Optional[TransformProgram]:
        obj_match = ACTIONS_OBJ_RE.search(script_body)
        func_match = ACTIONS_FUNC_RE.search(script_body)
        if not obj_match or not func_match:
            logger.debug("[CipherEngine] Helper object or decipher function not found")
            return None

        obj_name = obj_match.group(1)
        obj_body = obj_match.group(2)
        func_body = func_match.group(1)

        helpers = {
            "r": _helper_key(REVERSE_KEY_RE, obj_body),
            "s": _helper_key(SLICE_KEY_RE, obj_body),
            "p": _helper_key(SPLICE_KEY_RE, obj_body),
            "w": _helper_key(SWAP_KEY_RE, obj_body),
        }
        by_name = {name: op for op, name in helpers.items() if name}
        if not by_name:
            return None

        keys = "|".join(re.escape(name) for name in by_name)
        call_re = re.compile(
            rf"(?:a=)?{re.escape(obj_name)}"
            rf"(?:\.({keys})|\['({keys})'\]|\[\"({keys})\"\])"
            rf"\(a,(\d+)\)"
        )

        tokens: List[str] = []
        for call in call_re.finditer(func_body):
            name = call.group(1) or call.group(2) or call.group(3)
            op = by_name[name]
            tokens.append(op if op == "r" else f"{op}{call.group(4)}")

        if not tokens:
            return None

        return " ".join(tokens)

    def decipher(self, cipher_value: str, program: TransformProgram) -> Optional[str]:
        if not cipher_value or not program:
            return None

        chars = list(cipher_value)
        for token in program.split():
            op, arg = token[0], token[1:]
            if op == "r":
                chars.reverse()
                continue
            if not arg.isdigit():
                return None
            pos = int(arg)
            if op == "w":
                if not chars:
                    return None
                target = pos % len(chars)
                chars[0], chars[target] = chars[target], chars[0]
            elif op in ("s", "p"):
                del chars[:pos]
            else:
                return None

        return "".join(chars)
