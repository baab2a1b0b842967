"""Text transforms used by the response optimizer"""

import re
from typing import List, Optional, Tuple, Iterable

from core.conversation.optimization import rules


def substitute(text: str, table: Iterable[Tuple[str, str]]) -> str:
    """Apply ordered regex substitutions"""
    for pattern, replacement in table:
        text = re.sub(pattern, replacement, text, flags=re.MULTILINE)
    return text


def summarize(text: str, limit: int = rules.SHORT_RESPONSE_LIMIT) -> str:
    """
    Reduce text to at most three key sentences.

    A key sentence mentions one of the key markers or is longer than
    KEY_SENTENCE_MIN_LENGTH. When no key sentences are found, or the summary
    would still exceed the limit, the text is truncated with an ellipsis.
    """
    sentences = text.split(". ")
    key_sentences = [
        sentence for sentence in sentences
        if any(marker in sentence for marker in rules.KEY_SENTENCE_MARKERS)
        or len(sentence) > rules.KEY_SENTENCE_MIN_LENGTH
    ][:3]

    if key_sentences:
        summary = ". ".join(s.rstrip(".") for s in key_sentences) + "."
        if len(summary) <= limit:
            return summary

    return text[:limit] + "..."


def expand(text: str, project_type: Optional[str]) -> str:
    expanded = text
    if project_type:
        expanded += rules.EXPANSION_PROJECT_NOTE.format(project_type=project_type)
    return expanded + rules.EXPANSION_GENERIC_NOTE


def contains_technical_terms(text: str) -> bool:
    lowered = text.lower()
    return any(term.lower() in lowered for term in rules.TECHNICAL_TERMS)


def simplify_technical_language(text: str) -> str:
    for technical, simple in rules.SIMPLIFICATIONS.items():
        text = re.sub(re.escape(technical), simple, text, flags=re.IGNORECASE)
    return text


def add_technical_detail(text: str, project_type: Optional[str]) -> str:
    if project_type == "kitchen":
        return text + rules.KITCHEN_TECHNICAL_NOTE
    return text + rules.GENERIC_TECHNICAL_NOTE


def _is_action_line(line: str) -> bool:
    lowered = line.lower()
    return any(verb in lowered for verb in rules.ACTION_ITEM_VERBS)


def prioritize_action_items(text: str) -> str:
    """
    Move action lines ahead of the rest of the response.

    Every line of the input is kept. When there is nothing to reorder an
    emergency lead-in is placed first.
    """
    lines = text.split("\n")
    actions = [line for line in lines if line.strip() and _is_action_line(line)]
    if not actions or len(actions) == len([line for line in lines if line.strip()]):
        return rules.EMERGENCY_LEAD + "\n\n" + text

    rest = [line for line in lines if line not in actions]
    return "\n".join([rules.PRIORITY_HEADER] + actions + [""] + rest).rstrip()


def _words(text: str) -> set:
    return set(re.findall(r"[a-z0-9']+", text.lower()))


def similarity(a: str, b: str) -> float:
    """Jaccard similarity over word sets"""
    words_a, words_b = _words(a), _words(b)
    if not words_a and not words_b:
        return 1.0
    return len(words_a & words_b) / len(words_a | words_b)


def has_recent_similarity(text: str, recent: List[str]) -> bool:
    return any(similarity(text, previous) >= rules.SIMILARITY_THRESHOLD for previous in recent)


def rephrase(text: str, recent: List[str]) -> str:
    """Deterministic alternate phrasing keyed on how many recent responses exist"""
    opener = rules.ALTERNATE_OPENERS[len(recent) % len(rules.ALTERNATE_OPENERS)]
    if not text.strip():
        return opener.strip()
    first_word = text.split(maxsplit=1)[0]
    # "I", "I'm" and acronyms such as HVAC keep their case
    if re.match(r"I\b", first_word) or (len(first_word) > 1 and first_word[:2].isupper()):
        return opener + text
    return opener + text[0].lower() + text[1:]


def topic_summary_note(topics: List[str]) -> str:
    return "\n\nTopics we've discussed so far: " + ", ".join(t.replace("_", " ") for t in topics) + "."


def incorporate_successful_phrases(text: str, phrases: List[str]) -> str:
    """Swap a weak opener for a phrase that has worked before"""
    if any(phrase in text for phrase in phrases):
        return text
    for phrase in phrases:
        for opener in rules.PHRASE_OPENERS.get(phrase, []):
            if text.startswith(opener):
                rest = text[len(opener):].lstrip()
                return f"{phrase}. {rest}" if rest else phrase + "."
    return text


def apply_successful_structure(text: str, structures: List[str]) -> str:
    """Close with a call to action when the structure calls for one"""
    wants_action = any("action" in structure for structure in structures)
    if not wants_action:
        return text
    lowered = text.lower()
    if any(marker in lowered for marker in rules.ACTION_MARKERS):
        return text
    return text + rules.STRUCTURE_CLOSING


def avoid_failure_patterns(text: str, failure_patterns: List[str]) -> str:
    """Strip phrasings that have been associated with failed turns"""
    for pattern in failure_patterns:
        if not pattern:
            continue
        text = re.sub(r"\s*" + re.escape(pattern) + r"[.!]?", "", text, flags=re.IGNORECASE)
    return text.strip()


def incorporate_trending_topics(text: str, trends: List[str]) -> str:
    names = ", ".join(t.replace("_", " ") for t in trends)
    return text + f"\n\nMany of our clients are also asking about {names} right now."


def add_additional_details(text: str, project_type: Optional[str]) -> str:
    note = rules.PROJECT_DETAIL_NOTES.get(project_type or "")
    if note:
        return text + "\n\n" + note
    return text + "\n\nEvery project starts with a site assessment, followed by a written scope, schedule and estimate."


def condense(text: str) -> str:
    """Keep the first two sentences"""
    sentences = re.split(r"(?<=[.!?])\s+", text.strip())
    if len(sentences) <= 2:
        return text
    return " ".join(sentences[:2])
