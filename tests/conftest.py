"""
Pytest fixtures and configuration for Neurativo pipeline tests.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest
from docx import Document

from neurativo_pipeline.fetcher import FetchResult
from neurativo_pipeline.llm_client import AIProvider
from neurativo_pipeline.models import AIResponse


ARTICLE_PARAGRAPHS = [
    "Photosynthesis is the process by which green plants convert light energy into chemical energy. "
    "It is one of the most important biological processes on Earth.",
    "The light-dependent reactions take place in the thylakoid membranes of the chloroplast. "
    "Water molecules are split and oxygen is released as a by-product of this stage.",
    "The Calvin cycle uses the energy stored in ATP and NADPH to fix carbon dioxide into sugars. "
    "This cycle is the key mechanism that links light capture to the production of glucose.",
]


@pytest.fixture
def article_text() -> str:
    """Plain text of the sample article, paragraphs separated by blank lines."""
    return "\n\n".join(ARTICLE_PARAGRAPHS)


@pytest.fixture
def sample_html_content() -> str:
    """Sample page with navigation, an article and a footer."""
    paragraphs = "\n".join(f"<p>{p}</p>" for p in ARTICLE_PARAGRAPHS)
    return f"""
<!DOCTYPE html>
<html>
<head>
    <title>Photosynthesis Explained | Biology Notes</title>
    <meta property="og:title" content="Photosynthesis Explained">
    <script>var tracking = "do not extract me";</script>
    <style>body {{ color: black; }}</style>
</head>
<body>
    <header><a href="/">Biology Notes</a></header>
    <nav><ul><li>Home</li><li>Topics</li><li>About</li></ul></nav>
    <main>
        <p>Main wrapper text that should lose to the article element when both exist.
        It is long enough to qualify on its own as a content region for extraction,
        so the precedence of the article strategy is what decides the winner here.</p>
        <article>
            <h1>Photosynthesis Explained</h1>
            {paragraphs}
        </article>
    </main>
    <aside>Related posts and advertising</aside>
    <footer>Copyright 2024 Biology Notes. All rights reserved.</footer>
</body>
</html>
"""


@pytest.fixture
def educational_document() -> str:
    """Raw document text mentioning the word framework several times."""
    return (
        "Introduction to Learning Frameworks\n\n"
        "A learning framework is a structured approach that guides how teachers plan lessons. "
        "The framework defines the key principles that shape every learning activity.\n\n"
        "Page 1\n\n"
        "Bloom theory describes levels of thinking, from remembering facts to creating new ideas. "
        "Teachers use this framework because it makes assessment objectives explicit.\n\n"
        "42\n\n"
        "Author: Jane Doe\n\n"
        "However, no single framework fits every classroom, therefore educators combine approaches "
        "and evaluate the results of each learning process over time."
    )


@pytest.fixture
def sample_docx(tmp_path: Path) -> Path:
    """Create a sample Word document."""
    docx_path = tmp_path / "cell-biology_notes.docx"
    doc = Document()

    doc.add_heading("Cell Biology Basics", level=1)
    doc.add_paragraph(
        "The cell is the fundamental unit of life. Every living organism is made of one or more cells, "
        "and each cell carries out the essential processes that keep the organism alive."
    )
    doc.add_paragraph(
        "The nucleus stores genetic information, while mitochondria produce the energy the cell needs. "
        "The membrane controls which molecules enter and leave the cell."
    )

    doc.save(str(docx_path))
    return docx_path


@pytest.fixture
def make_fetch_result():
    """Factory for FetchResult objects wrapping a markup string."""

    def _make(markup: str, url: str = "https://example.com/article", content_type: str = "text/html; charset=utf-8"):
        return FetchResult(
            url=url,
            final_url=url,
            status_code=200,
            content_type=content_type,
            body=markup.encode("utf-8"),
            text=markup,
        )

    return _make


@pytest.fixture
def fake_fetcher(make_fetch_result, sample_html_content):
    """Fetcher returning the sample page without any network access."""
    return Mock(side_effect=lambda url, timeout=30.0: make_fetch_result(sample_html_content, url=url))


def make_http_response(status_code: int = 200, json_data=None, text: str = "") -> Mock:
    """Build a requests.Response stand-in."""
    response = Mock()
    response.status_code = status_code
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


class StubProvider(AIProvider):
    """Provider returning a fixed response (or raising) for every operation."""

    def __init__(self, name: str, response: AIResponse = None, error: Exception = None):
        self.name = name
        self.response = response
        self.error = error
        self.calls = []

    def _answer(self, operation: str):
        self.calls.append(operation)
        if self.error is not None:
            raise self.error
        return self.response

    def generate_quiz(self, content, options):
        return self._answer("generate_quiz")

    def generate_explanation(self, question, user_answer, correct_answer, simple=False):
        return self._answer("generate_explanation")

    def summarize_content(self, content):
        return self._answer("summarize_content")

    def generate_learning_path(self, goal, timeframe, difficulty):
        return self._answer("generate_learning_path")
