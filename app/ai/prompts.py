"""Prompt builders for each generation stage."""

from __future__ import annotations

from app.jobs.models import ChapterPlan, ScriptOutline

WORDS_PER_MINUTE = 150
TRANSITION_TAIL_CHARS = 200
HOOK_COUNT = 3
TITLE_COUNT = 5
TITLE_MAX_CHARS = 100
TITLE_EXCERPT_CHARS = 6000

OUTLINE_FORMAT = """Video Title: [refined title]
Total Word Count: [number]
Primary Twist: [the complication the second half turns on]

Chapter 1
Summary: [2-3 line summary]
Word Count: [number]

Chapter 2
Summary: [2-3 line summary]
Word Count: [number]"""


def _style_block(style_guide: str | None) -> str:
  """Prepend a caller supplied style guide when one is set."""
  if not style_guide or not style_guide.strip():
    return ""
  return f"## STYLE GUIDE\nFollow this style guide for all prose you write:\n{style_guide.strip()}\n\n---\n\n"


def target_word_count(duration_minutes: int) -> int:
  """Return the narration word budget for a duration."""
  return duration_minutes * WORDS_PER_MINUTE


def outline_prompt(title: str, duration_minutes: int, plot: str | None) -> str:
  """Ask for a chaptered outline in the line-oriented outline format."""
  plot_line = plot.strip() if plot and plot.strip() else "No extra guidance; choose a compelling story."
  return (
    "You are an expert long-form scriptwriter. Plan a narrated story as a chaptered outline.\n\n"
    "## DETAILS\n"
    f"- Working title: {title}\n"
    f"- Duration: {duration_minutes} minutes\n"
    f"- Total word count: {duration_minutes} x {WORDS_PER_MINUTE} = {target_word_count(duration_minutes)}\n"
    f"- Plot guidance: {plot_line}\n\n"
    "## REQUIREMENTS\n"
    "- Divide the story into numbered chapters of 800-1000 words each, starting at Chapter 1.\n"
    '- Every chapter MUST include a line formatted exactly as "Word Count: [number]".\n'
    "- Output the outline only, with no extra commentary.\n\n"
    "## OUTPUT FORMAT\n"
    f"{OUTLINE_FORMAT}\n"
  )


def _first_summary(outline: ScriptOutline) -> str:
  return outline.chapters[0].summary if outline.chapters else ""


def hooks_prompt(outline: ScriptOutline) -> str:
  """Ask for opening hooks as a raw JSON array of strings."""
  return (
    f"Write {HOOK_COUNT} distinct opening hooks of roughly 100-150 words for a narrated story.\n\n"
    "## CONTEXT\n"
    f"- Title: {outline.title}\n"
    f"- Chapter 1 summary: {_first_summary(outline)}\n"
    f"- Primary twist: {outline.twist or 'none'}\n\n"
    "## OUTPUT FORMAT\n"
    f"Respond with ONLY a JSON array of {HOOK_COUNT} strings, starting with [ and ending with ]. No markdown fences.\n"
  )


def hooks_feedback_prompt(outline: ScriptOutline, feedback: str) -> str:
  """Ask for fresh hooks that address user feedback."""
  return (
    f"Your previous opening hooks were rejected. Write {HOOK_COUNT} new, distinct hooks of roughly 100-150 words.\n\n"
    "## CONTEXT\n"
    f"- Title: {outline.title}\n"
    f"- Chapter 1 summary: {_first_summary(outline)}\n\n"
    "## FEEDBACK (follow above all else)\n"
    f'"""\n{feedback.strip()}\n"""\n\n'
    "## OUTPUT FORMAT\n"
    f"Respond with ONLY a JSON array of {HOOK_COUNT} strings. No markdown fences.\n"
  )


def _transition(chapter: ChapterPlan, opening: str | None, previous_chapter_text: str | None) -> str:
  if chapter.index == 1:
    return f'Begin by continuing seamlessly from this opening hook: "{opening or ""}"'
  tail = (previous_chapter_text or "")[-TRANSITION_TAIL_CHARS:]
  return f'Continue seamlessly from the end of Chapter {chapter.index - 1}, which ended: "...{tail}"'


def chapter_prompt(chapter: ChapterPlan, *, outline: ScriptOutline, opening: str | None, previous_chapter_text: str | None, style_guide: str | None = None) -> str:
  """Ask for the full prose of one chapter."""
  return (
    f"{_style_block(style_guide)}"
    f"You are writing the narrated script for \"{outline.title}\". Expand Chapter {chapter.index} into full prose.\n\n"
    "## INSTRUCTIONS\n"
    f'1. The chapter summary is: "{chapter.summary}".\n'
    f"2. The chapter must be very close to {chapter.target_word_count} words.\n"
    f"3. {_transition(chapter, opening, previous_chapter_text)}\n"
    "4. Cover every plot point in the summary without repeating earlier chapters.\n\n"
    "## OUTPUT FORMAT\n"
    f"Only the continuous script text for Chapter {chapter.index}. No titles, summaries or notes.\n"
  )


STYLE_GUIDE_FORMAT = """{
  "tone_and_mood": {"primary_tone": "string", "secondary_tone": "string", "description": "string"},
  "pacing": {"speed": "Fast | Moderate | Slow | Variable", "description": "string"},
  "sentence_structure": {"complexity": "string", "average_length_words": 0, "variation": "High | Moderate | Low", "rhythm": "string"},
  "vocabulary": {"grade_level": "string", "word_choice": "string", "description": "string"},
  "narrative_voice": {"point_of_view": "string", "emotionality": "string", "description": "string"},
  "dialogue": {"realism": "string", "function": "string", "description": "string"}
}"""


def style_analysis_prompt(samples: list[str]) -> str:
  """Ask for a JSON style guide that reverse-engineers the voice of the sample scripts."""
  joined = "\n\n---\n\n".join(f"## SAMPLE {position}\n\n{sample.strip()}" for position, sample in enumerate(samples, start=1))
  return (
    "You are a literary analyst. Study the sample scripts below and reverse-engineer the writing style so another writer can reproduce it exactly.\n\n"
    f"{joined}\n\n"
    "## WHAT TO DESCRIBE\n"
    "- Tone and mood, and how they shift.\n"
    "- Pacing, sentence complexity, typical sentence length and rhythm.\n"
    "- Reading level and word choice.\n"
    "- Point of view and how emotion is conveyed.\n"
    "- How dialogue sounds and what it is used for.\n\n"
    "## OUTPUT FORMAT\n"
    "Respond with ONLY one JSON object in this shape. No markdown fences and no commentary.\n"
    f"{STYLE_GUIDE_FORMAT}\n"
  )


def titles_from_script_prompt(script_text: str) -> str:
  """Ask for candidate video titles based on the opening of a finished script."""
  excerpt = script_text[:TITLE_EXCERPT_CHARS].strip()
  return (
    f"You title narrated story videos. Read the script excerpt and write {TITLE_COUNT} candidate video titles.\n\n"
    "## SCRIPT EXCERPT\n"
    f'"""\n{excerpt}\n"""\n\n'
    "## RULES\n"
    "- Open with an emotional hook, such as a short quote or a vivid situation.\n"
    "- Follow it with a dash, then name the hero and the twist that makes viewers curious.\n"
    f"- Every title must be under {TITLE_MAX_CHARS} characters.\n\n"
    "## OUTPUT FORMAT\n"
    f"Respond with ONLY a JSON array of {TITLE_COUNT} strings, starting with [ and ending with ]. No markdown fences.\n"
  )


def description_prompt(title: str, script_text: str) -> str:
  """Ask for a search-friendly video description of a finished script."""
  return (
    "You write video descriptions for a storytelling channel. Write the description for the video below.\n\n"
    f"**Video title:** {title}\n"
    "**Script:**\n"
    f'"""\n{script_text.strip()}\n"""\n\n'
    "## STRUCTURE\n"
    "1. One or two sentences that rephrase the title as a hook.\n"
    "2. A short paragraph summarising the story arc without revealing the ending.\n"
    "3. An invitation to subscribe and comment on the story.\n"
    "4. A final line with 3 relevant hashtags.\n\n"
    "## OUTPUT FORMAT\n"
    "Only the description text.\n"
  )


def plot_idea_prompt(title: str) -> str:
  """Ask for a short plot idea that fits a proposed video title."""
  return (
    "You are a storyteller. Write a brief plot idea for a narrated story video with this title.\n\n"
    f'**Video title:** "{title.strip()}"\n\n'
    "A heroic figure finds someone in trouble, uncovers a hidden truth and brings the story to a just, warm resolution.\n\n"
    "## OUTPUT FORMAT\n"
    "Only a one-paragraph plot idea of 3-4 sentences.\n"
  )
