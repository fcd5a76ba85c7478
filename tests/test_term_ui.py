import contextlib

from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from movement_import.resolver import CreateConceptRequest
from movement_import.term_ui import (
    prompt_new_concept_name,
    prompt_select_parent,
    select_value_or_create,
)

OPTIONS = ["Mano de Obra", "Materiales", "Gastos Generales", "Sin asignar"]


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_select_accepts_default_with_enter():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        result = select_value_or_create(OPTIONS, default="Sin asignar", session=sess)
        assert result == "Sin asignar"


def test_select_typed_option_returns_canonical_name():
    with pipe_session() as (pipe, sess):
        # Ctrl-A (home), Ctrl-K (kill to end), type, Enter
        pipe.send_text("\x01\x0bmateriales\r")
        result = select_value_or_create(OPTIONS, default="Sin asignar", session=sess)
        assert result == "Materiales"


def test_select_enter_commits_prefix_completion():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bGast\r")
        result = select_value_or_create(
            OPTIONS, default="Sin asignar", session=sess, allow_create=False
        )
        assert result == "Gastos Generales"


def test_select_unknown_value_requests_creation():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bHonorarios\r")
        result = select_value_or_create(OPTIONS, default="Sin asignar", session=sess)
        assert result == CreateConceptRequest("Honorarios")


def test_select_unknown_value_without_creation_is_returned_as_typed():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bHonorarios\r")
        result = select_value_or_create(
            OPTIONS, default="Sin asignar", session=sess, allow_create=False
        )
        assert result == "Honorarios"


def test_select_create_entry_requests_creation_without_name():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0b+ Cr\r")
        result = select_value_or_create(OPTIONS, default="Sin asignar", session=sess)
        assert result == CreateConceptRequest("")


def test_new_concept_name_keeps_initial_and_collapses_spaces():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert prompt_new_concept_name(initial="Honorarios", session=sess) == "Honorarios"
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0b  Gastos   Legales \r")
        assert prompt_new_concept_name(initial="x", session=sess) == "Gastos Legales"


def test_new_concept_name_rejects_invalid_then_accepts():
    with pipe_session() as (pipe, sess):
        # Empty name fails validation; the prompt stays open for a retry
        pipe.send_text("\x01\x0b\r")
        pipe.send_text("Fletes\r")
        assert prompt_new_concept_name(initial="Honorarios", session=sess) == "Fletes"


def test_select_parent_is_case_insensitive():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0begresos\r")
        result = prompt_select_parent(["Ingresos", "Egresos"], default="Ingresos", session=sess)
        assert result == "Egresos"


def test_select_parent_returns_the_qualified_label():
    labels = ["Egresos > Otros", "Ingresos > Otros"]
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bingresos > otros\r")
        result = prompt_select_parent(labels, default="Egresos > Otros", session=sess)
        assert result == "Ingresos > Otros"
