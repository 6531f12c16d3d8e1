from dataclasses import asdict, dataclass, field
from typing import Any, Union

SINGLE_CHOICE = "single-choice"
MULTI_CHOICE = "multi-choice"
TEXT_INPUT = "text-input"

QUESTION_TYPES: tuple[str, ...] = (SINGLE_CHOICE, MULTI_CHOICE, TEXT_INPUT)

# Tags used by older prompt versions and stored quizzes.
QUESTION_TYPE_ALIASES: dict[str, str] = {
    "mcq-single": SINGLE_CHOICE,
    "mcq-multiple": MULTI_CHOICE,
}

DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard", "mixed")


def canonical_question_type(value: object) -> Union[str, None]:
    if not isinstance(value, str):
        return None
    tag = value.strip().lower()
    tag = QUESTION_TYPE_ALIASES.get(tag, tag)
    return tag if tag in QUESTION_TYPES else None


@dataclass
class GenerationOptions:
    question_count: int = 5
    question_types: list[str] = field(default_factory=lambda: [SINGLE_CHOICE])
    difficulty: str = "mixed"


@dataclass
class SingleChoiceQuestion:
    id: str
    prompt: str
    options: list[str]
    correct_index: int
    explanation: str
    type: str = SINGLE_CHOICE


@dataclass
class MultiChoiceQuestion:
    id: str
    prompt: str
    options: list[str]
    correct_indices: list[int]
    explanation: str
    type: str = MULTI_CHOICE


@dataclass
class TextInputQuestion:
    id: str
    prompt: str
    expected: str
    case_sensitive: bool
    explanation: str
    type: str = TEXT_INPUT


GeneratedQuestion = Union[SingleChoiceQuestion, MultiChoiceQuestion, TextInputQuestion]


@dataclass
class GenerationMetadata:
    source_length: int
    processed_length: int
    requested_count: int
    generated_count: int
    question_types: list[str]
    difficulty: str
    generated_at: str


@dataclass
class GenerationResult:
    success: bool
    questions: list[GeneratedQuestion] = field(default_factory=list)
    metadata: Union[GenerationMetadata, None] = None
    error: Union[str, None] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class KeyStatus:
    has_key: bool
    is_valid: bool
    key_preview: Union[str, None]


@dataclass
class QueueStatus:
    queue_length: int
    is_processing: bool
    rate_limit_until: float
    is_rate_limited: bool


@dataclass
class ExplanationResult:
    success: bool
    explanation: str
    generated_at: str
    error: Union[str, None] = None
