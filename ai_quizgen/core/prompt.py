from __future__ import annotations

from dataclasses import dataclass

from .types import SINGLE_CHOICE, TEXT_INPUT

SINGLE_CHOICE_TEMPLATE = """Generate multiple choice questions from the following content.

Content:
{content}

Requirements:
- Generate {questionCount} multiple choice questions
- Each question should have exactly 4 options (A, B, C, D)
- Only one correct answer per question
- Include clear explanations for correct answers
- Questions should test understanding, not just memorization
- Vary difficulty levels appropriately

Format your response as valid JSON with this exact structure:
{
  "questions": [
    {
      "type": "single-choice",
      "question": "Question text here?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "explanation": "Explanation of why this answer is correct"
    }
  ]
}

Important: Return ONLY the JSON, no additional text or formatting."""

MIXED_TEMPLATE = """Generate a mix of question types from the following content.

Content:
{content}

Requirements:
- Generate {questionCount} questions total
- Include multiple choice (single answer), multiple choice (multiple answers), and text input questions
- Distribute question types evenly
- Each multiple choice question should have 4 options
- Text input questions should have clear, specific answers
- Include explanations for all questions
- Test different levels of understanding

Format your response as valid JSON with this exact structure:
{
  "questions": [
    {
      "type": "single-choice",
      "question": "Question text?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "explanation": "Explanation text"
    },
    {
      "type": "multi-choice",
      "question": "Question text?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswers": [0, 2],
      "explanation": "Explanation text"
    },
    {
      "type": "text-input",
      "question": "Question text?",
      "correctAnswer": "Expected answer",
      "caseSensitive": false,
      "explanation": "Explanation text"
    }
  ]
}

Important: Return ONLY the JSON, no additional text or formatting."""

TEXT_INPUT_TEMPLATE = """Generate text input questions from the following content.

Content:
{content}

Requirements:
- Generate {questionCount} text input questions
- Questions should have specific, clear answers
- Avoid overly subjective questions
- Include explanations
- Mix short answer and fill-in-the-blank style questions

Format your response as valid JSON with this exact structure:
{
  "questions": [
    {
      "type": "text-input",
      "question": "Question text here?",
      "correctAnswer": "Expected answer",
      "caseSensitive": false,
      "explanation": "Explanation of the answer"
    }
  ]
}

Important: Return ONLY the JSON, no additional text or formatting."""

DEDICATED_TEMPLATES = {
    SINGLE_CHOICE: SINGLE_CHOICE_TEMPLATE,
    TEXT_INPUT: TEXT_INPUT_TEMPLATE,
}


@dataclass
class PromptContext:
    content: str
    question_count: int
    question_types: list[str]
    difficulty: str = "mixed"


def select_template(question_types: list[str]) -> str:
    # multi-choice has no dedicated template and falls through to mixed
    if len(question_types) == 1:
        return DEDICATED_TEMPLATES.get(question_types[0], MIXED_TEMPLATE)
    return MIXED_TEMPLATE


def render_prompt(ctx: PromptContext) -> str:
    template = select_template(ctx.question_types)
    # JSON braces in the templates rule out str.format; content goes in last
    prompt = template.replace("{questionCount}", str(ctx.question_count), 1)
    prompt = prompt.replace("{content}", ctx.content, 1)
    if ctx.difficulty != "mixed":
        prompt += f"\n\nTarget difficulty for every question: {ctx.difficulty}."
    return prompt
