"""Entity resolution for exercise references.

Maps free-text exercise references coming from the backend onto the stable
ids of a structured training program.

Similarity is token containment, not edit distance:
- tokens are whitespace-separated, lower-cased, and tokens of length <= 2 are dropped
- a token pair matches when either token contains the other
- similarity = matches / max(len(tokens_a), len(tokens_b))
"""

import random
import re
import string
import time
import unicodedata
from collections.abc import Iterable, Iterator

from loguru import logger

from fitcoach.coach.errors import ResolutionError
from fitcoach.coach.schemas.plans import Exercise, TrainingProgram, WorkoutDay, WorkoutExercise
from fitcoach.coach.schemas.proposal import ExerciseReplacementChanges

# Score above which two names are the same entity
SIMILARITY_THRESHOLD = 0.7

MIN_TOKEN_LENGTH = 3
SLUG_MAX_LENGTH = 30
ID_SUFFIX_LENGTH = 4

_BASE36 = string.digits + string.ascii_lowercase
_ID_SPLIT = re.compile(r"[\s_\-]+")


def iter_exercises(plan: TrainingProgram) -> Iterator[tuple[WorkoutDay, WorkoutExercise]]:
    """Yield (day, slot) pairs in plan order."""
    for day in plan.workout_days:
        for slot in day.exercises:
            yield day, slot


def find_exercise(plan: TrainingProgram, exercise_id: str) -> Exercise | None:
    for _, slot in iter_exercises(plan):
        if slot.exercise.id == exercise_id:
            return slot.exercise
    return None


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


def _tokens(name: str) -> list[str]:
    return [token for token in _normalize(name).split(" ") if len(token) >= MIN_TOKEN_LENGTH]


def name_similarity(name_a: str, name_b: str) -> float:
    """Symmetric containment similarity between two exercise names.

    Args:
        name_a: First name
        name_b: Second name

    Returns:
        Score in [0, 1]
    """
    tokens_a = _tokens(name_a)
    tokens_b = _tokens(name_b)
    if not tokens_a or not tokens_b:
        return 0.0

    matches = 0
    for token_a in tokens_a:
        if any(token_a in token_b or token_b in token_a for token_b in tokens_b):
            matches += 1

    return matches / max(len(tokens_a), len(tokens_b))


def find_similar(
    plan: TrainingProgram | None,
    candidate_name: str,
    exclude_ids: Iterable[str] = (),
) -> Exercise | None:
    """Find an existing exercise that is the same entity as ``candidate_name``.

    Args:
        plan: Training program to search
        candidate_name: Free-text name proposed by the backend
        exclude_ids: Exercise ids that must not be returned (e.g. the one being replaced)

    Returns:
        The existing exercise, or None when no exact or > 0.7 similar match exists
    """
    if plan is None or not candidate_name.strip():
        return None

    excluded = set(exclude_ids)
    search_name = _normalize(candidate_name)

    for _, slot in iter_exercises(plan):
        existing = slot.exercise
        if existing.id in excluded:
            continue
        existing_name = _normalize(existing.name)
        if existing_name == search_name:
            return existing
        if name_similarity(existing_name, search_name) > SIMILARITY_THRESHOLD:
            logger.debug(
                "Matched similar existing exercise",
                candidate=candidate_name,
                existing_id=existing.id,
            )
            return existing

    return None


def _match_by_tokens(plan: TrainingProgram, reference: str) -> str | None:
    """Find the first exercise whose name or id shares a token with ``reference``."""
    search_terms = [term for term in _ID_SPLIT.split(reference.lower()) if len(term) >= MIN_TOKEN_LENGTH]
    if not search_terms:
        return None

    for _, slot in iter_exercises(plan):
        exercise = slot.exercise
        candidate_tokens = _tokens(exercise.name) + [
            term for term in _ID_SPLIT.split(exercise.id.lower()) if len(term) >= MIN_TOKEN_LENGTH
        ]
        for term in search_terms:
            if any(term in token or token in term for token in candidate_tokens):
                return exercise.id
    return None


def _match_by_mention(plan: TrainingProgram, text: str) -> str | None:
    """Find the first exercise whose full name appears in free text."""
    haystack = _normalize(text)
    if not haystack:
        return None
    for _, slot in iter_exercises(plan):
        if _normalize(slot.exercise.name) in haystack:
            return slot.exercise.id
    return None


def resolve_target(
    plan: TrainingProgram,
    changes: ExerciseReplacementChanges,
    proposal_text: str = "",
) -> str:
    """Resolve the id of the exercise a replacement proposal targets.

    Priority:
        1. explicit ``exerciseId`` present in the plan
        2. token match of ``oldExercise`` / the unmatched id against plan names and ids,
           then exercise names mentioned in the proposal text
        3. first exercise in the plan

    Args:
        plan: Current training program
        changes: Replacement payload
        proposal_text: Proposal title and description

    Returns:
        Exercise id present in the plan

    Raises:
        ResolutionError: If the plan has no exercises at all
    """
    if changes.exercise_id and find_exercise(plan, changes.exercise_id) is not None:
        return changes.exercise_id

    references = [ref for ref in (changes.old_exercise, changes.exercise_id) if ref]
    for reference in references:
        existing = find_similar(plan, reference)
        if existing is not None:
            return existing.id
        inferred = _match_by_tokens(plan, reference)
        if inferred is not None:
            logger.info("Inferred replacement target from reference", reference=reference, exercise_id=inferred)
            return inferred

    mentioned = _match_by_mention(plan, proposal_text)
    if mentioned is not None:
        logger.info("Inferred replacement target from proposal text", exercise_id=mentioned)
        return mentioned

    for _, slot in iter_exercises(plan):
        logger.warning(
            "Falling back to first exercise in plan",
            exercise_id=slot.exercise.id,
            references=references,
        )
        return slot.exercise.id

    raise ResolutionError()


def _slugify(name: str) -> str:
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-z0-9\s]", "", folded.lower())
    return re.sub(r"\s+", "_", cleaned.strip())[:SLUG_MAX_LENGTH]


def generate_exercise_id(name: str, now_ms: int | None = None, rng: random.Random | None = None) -> str:
    """Synthesize a new exercise id: ``slug(name)_<epoch ms>_<4-char base36>``."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    chooser = rng or random
    suffix = "".join(chooser.choice(_BASE36) for _ in range(ID_SUFFIX_LENGTH))
    slug = _slugify(name) or "exercise"
    return f"{slug}_{timestamp}_{suffix}"
