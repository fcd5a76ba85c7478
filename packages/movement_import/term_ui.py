"""Terminal prompts (prompt_toolkit) for resolving incompatible values.

Kept apart from the resolver so the prompts can be driven headlessly in tests
with a pipe input and ``DummyOutput``.
"""

from __future__ import annotations

from collections.abc import Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

from .catalog import validate_name
from .resolver import CreateConceptRequest

CREATE_SENTINEL = "+ Crear nuevo..."

_STYLE = Style.from_dict({"auto-suggestion": "fg:#888888"})


def _session(kb: KeyBindings, session: PromptSession | None) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _first_prefix_match(words: Sequence[str], text: str) -> str | None:
    if not text:
        return None
    lower = text.lower()
    for w in words:
        if w.lower() == lower:
            return None
        if w.lower().startswith(lower):
            return w
    return None


class _PrefixOrCreate(AutoSuggest):
    """Grey inline completion of a known option, or a creation hint."""

    def __init__(self, words: Sequence[str], allow_create: bool) -> None:
        self._words = [w for w in words if w != CREATE_SENTINEL]
        self._allow_create = allow_create

    def get_suggestion(self, buffer, document):
        text = document.text
        cand = _first_prefix_match(self._words, text)
        if cand is not None:
            return Suggestion(cand[len(text) :])
        if (
            text
            and self._allow_create
            and text.lower() not in {w.lower() for w in self._words}
        ):
            return Suggestion(f"  [Crear '{text}'?]")
        return None


def select_value_or_create(
    options: Sequence[str],
    *,
    default: str,
    message: str = "Elegir valor (Enter para aceptar): ",
    session: PromptSession | None = None,
    allow_create: bool = True,
) -> str | CreateConceptRequest:
    """Prompt for one of ``options``; optionally offer creating a new entry.

    Returns the chosen option text, or a :class:`CreateConceptRequest` when the
    operator picked the creation entry or typed a value that is not an option
    (only when ``allow_create``). An empty answer returns ``default``.
    """

    words = list(options) + ([CREATE_SENTINEL] if allow_create else [])
    canonical = {w.lower(): w for w in words}
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)

    kb = KeyBindings()

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cand = _first_prefix_match(words, b.document.text)
        if cand is not None:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _first_prefix_match(words, b.document.text)
            if cand is not None:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    sess = _session(kb, session)
    result = sess.prompt(
        message,
        default=default,
        completer=completer,
        auto_suggest=_PrefixOrCreate(words, allow_create),
        key_bindings=kb,
        style=_STYLE,
    ).strip()

    if not result:
        return default
    if allow_create and result == CREATE_SENTINEL:
        return CreateConceptRequest("")
    if result.lower() in canonical:
        return canonical[result.lower()]
    if allow_create:
        return CreateConceptRequest(result)
    return result


class _NameValidator(Validator):
    def validate(self, document) -> None:
        problem = validate_name(document.text)
        if problem is not None:
            raise ValidationError(message=problem)


def prompt_new_concept_name(
    *,
    initial: str = "",
    session: PromptSession | None = None,
    message: str = "Nombre (Enter para guardar • Esc para cancelar): ",
) -> str | None:
    """Collect a new category/subcategory name; ``None`` when cancelled."""

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    sess = _session(kb, session)
    value = sess.prompt(
        message,
        default=initial,
        validator=_NameValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    return " ".join(value.split()) if value is not None else None


def prompt_select_parent(
    parents: Sequence[str],
    *,
    default: str = "",
    session: PromptSession | None = None,
    message: str = "Elegir padre: ",
) -> str | None:
    """Prompt for a parent among ``parents``; Esc cancels and returns ``None``."""

    kb = KeyBindings()

    @kb.add("escape")
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    canonical = {p.lower(): p for p in parents}

    class _ParentValidator(Validator):
        def validate(self, document) -> None:
            if document.text.strip().lower() not in canonical:
                raise ValidationError(message="Elegir un padre de la lista.")

    sess = _session(kb, session)
    value = sess.prompt(
        message,
        default=default,
        completer=WordCompleter(list(parents), ignore_case=True, match_middle=True, sentence=True),
        validator=_ParentValidator(),
        validate_while_typing=False,
        key_bindings=kb,
    )
    if value is None:
        return None
    return canonical.get(value.strip().lower(), value)


__all__ = [
    "CREATE_SENTINEL",
    "prompt_new_concept_name",
    "prompt_select_parent",
    "select_value_or_create",
]
