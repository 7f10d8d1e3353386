"""
Prompt templates for the AI operations.

Every provider sends the same prompts; only the transport differs.
"""

from .models import QuizOptions, QuestionType

# System message for chat-style vendors
SYSTEM_PROMPT = (
    "You are an expert educational content creator. "
    "Always return valid JSON when requested."
)

# Per-type instruction embedded in the quiz prompt
TYPE_INSTRUCTIONS = {
    QuestionType.MULTIPLE_CHOICE: "Create multiple choice questions with exactly 4 options each",
    QuestionType.TRUE_FALSE: "Create true/false questions with clear statements",
    QuestionType.SHORT_ANSWER: "Create short answer questions requiring 1-3 word answers",
}

QUIZ_PROMPT_TEMPLATE = """You are an expert educational content creator. Generate a high-quality {difficulty} difficulty quiz with exactly {count} questions based on the following content:

{content}

STRICT REQUIREMENTS:
- Question type: {question_type}
- {type_instruction}
- Difficulty level: {difficulty} (easy = basic recall, medium = application, hard = analysis/synthesis)
- {explanation_instruction}
- {time_instruction}
- Questions must be clear, unambiguous, and directly related to the content
- For multiple choice: ensure only ONE correct answer and 3 plausible distractors
- For true/false: create clear statements that are definitively true or false
- Avoid trick questions or overly complex wording{topics_instruction}

CRITICAL: You MUST return ONLY valid JSON in this exact format with no additional text, markdown, or explanations:
{{
  "title": "Quiz Title",
  "description": "Brief quiz description",
  "category": "Subject category",
  "difficulty": "{difficulty}",
  "estimated_time": {estimated_time},
  "questions": [
    {{
      "id": "q1",
      "type": "question_type",
      "question": "Question text",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correct_answer": "Correct answer",
      "explanation": "Detailed explanation",
      "difficulty": "{difficulty}",
      "topic": "Topic name",
      "time_limit": {time_limit},
      "hints": ["Hint 1", "Hint 2"]
    }}
  ]
}}

Generate exactly {count} questions. Ensure all content is educational, accurate, and well-structured. The response must be valid JSON that can be parsed directly."""

EXPLANATION_PROMPT_TEMPLATE = """Explain why the answer to this question is "{correct_answer}" and not "{user_answer}":

Question: {question}
User's Answer: {user_answer}
Correct Answer: {correct_answer}

{verbosity}

Keep the explanation encouraging and educational."""

SUMMARY_PROMPT_TEMPLATE = """Summarize this content into key points suitable for creating educational quizzes:

{content}

Focus on:
- Main concepts and definitions
- Important facts and principles
- Key relationships between ideas
- Practical applications

Format as a structured summary with bullet points."""

LEARNING_PATH_PROMPT_TEMPLATE = """Create a learning path for: "{goal}"
Timeframe: {timeframe}
Difficulty: {difficulty}

Generate a structured learning plan with:
1. Clear title
2. Detailed description
3. Key topics to cover (as array)
4. Recommended study schedule
5. Milestones and checkpoints

Return as JSON with: title, description, topics, schedule, milestones"""


def estimated_minutes(options: QuizOptions) -> float:
    """Total quiz time in minutes."""
    return options.question_count * options.effective_time_limit / 60


def _format_minutes(minutes: float) -> str:
    return str(int(minutes)) if float(minutes).is_integer() else f"{minutes:g}"


def build_quiz_prompt(content: str, options: QuizOptions) -> str:
    """
    Build the quiz generation prompt.

    Embeds difficulty, question type and its instruction, explanation
    verbosity, the per-question time limit and the JSON schema every
    provider must answer with.
    """
    if options.include_explanations:
        explanation_instruction = "Include detailed explanations (2-3 sentences) for each answer"
    else:
        explanation_instruction = "Include brief explanations (1 sentence)"

    if options.time_limit:
        time_instruction = f"Time limit: {options.time_limit} seconds per question"
    else:
        time_instruction = "Default time limit: 30 seconds per question"

    topics_instruction = ""
    if options.topics:
        topics_instruction = f"\n- Focus on these topics: {', '.join(options.topics)}"

    return QUIZ_PROMPT_TEMPLATE.format(
        content=content,
        count=options.question_count,
        difficulty=options.difficulty.value,
        question_type=options.question_type.value,
        type_instruction=TYPE_INSTRUCTIONS[options.question_type],
        explanation_instruction=explanation_instruction,
        time_instruction=time_instruction,
        topics_instruction=topics_instruction,
        estimated_time=_format_minutes(estimated_minutes(options)),
        time_limit=options.effective_time_limit,
    )


def build_explanation_prompt(
    question: str, user_answer: str, correct_answer: str, simple: bool = False
) -> str:
    if simple:
        verbosity = "Provide a simple, easy-to-understand explanation."
    else:
        verbosity = "Provide a detailed explanation with context and examples."
    return EXPLANATION_PROMPT_TEMPLATE.format(
        question=question,
        user_answer=user_answer,
        correct_answer=correct_answer,
        verbosity=verbosity,
    )


def build_summary_prompt(content: str) -> str:
    return SUMMARY_PROMPT_TEMPLATE.format(content=content)


def build_learning_path_prompt(goal: str, timeframe: str, difficulty: str) -> str:
    return LEARNING_PATH_PROMPT_TEMPLATE.format(
        goal=goal, timeframe=timeframe, difficulty=difficulty
    )
