import pytest

from artevida.domain.base_enums import Intent
from artevida.repositories.intent import classify_intent


@pytest.mark.parametrize("question", [
    "Hola",
    "¡Hola!",
    "buenos días",
    "¿Qué tal?",
    "gracias",
    "hello there",
    "",
])
def test_small_talk(question):
    assert classify_intent(question) == Intent.CONVERSATIONAL


@pytest.mark.parametrize("question", [
    "¿Qué conciertos hay en Madrid?",
    "hola, muéstrame los eventos de 2024",
    "Precio del Festival de Jazz",
    "top 5 artistas por ingresos",
    "how many events are there?",
    "hola quiero ver el listado de recintos disponibles este mes por favor",
])
def test_data_questions(question):
    assert classify_intent(question) == Intent.DATA
