"""
Tests for text_metrics.py
"""

import pytest
from reportlab.pdfbase.pdfmetrics import stringWidth

from text_metrics import PLACEHOLDER, line_height, measure, normalize_text, wrap_text


def test_missing_text_measures_as_placeholder():
    expected = measure(PLACEHOLDER, 200, "Helvetica", 10)
    assert measure(None, 200, "Helvetica", 10) == expected
    assert measure("", 200, "Helvetica", 10) == expected
    assert normalize_text(None) == "-"


def test_measure_is_lines_times_line_height():
    text = "palavra " * 80
    lines = wrap_text(text, 150, "Helvetica", 10)
    assert len(lines) > 1
    assert measure(text, 150, "Helvetica", 10, line_gap=2) == len(lines) * line_height(10, 2)


def test_measure_is_deterministic():
    text = "Justificativa: a instituição mantém cadastro atualizado de todos os clientes."
    results = {measure(text, 180, "Helvetica", 10, 2) for _ in range(20)}
    assert len(results) == 1


def test_wrapped_lines_fit_the_width():
    text = "A avaliação considerou o programa de PLD/FTP vigente na data base do relatório."
    for line in wrap_text(text, 120, "Helvetica", 10):
        assert stringWidth(line, "Helvetica", 10) <= 120


def test_long_word_is_broken():
    word = "x" * 300
    lines = wrap_text(word, 100, "Helvetica", 10)
    assert len(lines) > 1
    assert "".join(lines) == word
    assert all(stringWidth(line, "Helvetica", 10) <= 100 for line in lines)


def test_hard_line_breaks_are_kept():
    assert wrap_text("um\ndois\r\ntrês", 500, "Helvetica", 10) == ["um", "dois", "três"]


def test_non_positive_width_is_rejected():
    with pytest.raises(ValueError):
        wrap_text("texto", 0, "Helvetica", 10)
