from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional

from plotform.run_utils.llm import BackoffCaller, RetryObserver
from plotform.utils.errors import ShapeError

logger = logging.getLogger(__name__)

FALLBACK_IDEA = "A project about..."

PROMPT_LIBRARY: Dict[str, List[str]] = {
    "Podcast": [
        "A 6-episode podcast season named '[Podcast Name]' about the cultural impact of [Your Topic]. "
        "Each episode should focus on a different decade, from the 70s to today, with a final episode "
        "speculating on the future.",
        "An interview-style podcast of 8 episodes focusing on [Industry/Field]. Each episode features an "
        "expert guest, with segments for their personal story, their biggest discovery, and a listener Q&A.",
        "A solo-hosted educational podcast with 10 short episodes (10-15 minutes each) explaining "
        "[Complex Subject] to beginners.",
    ],
    "Book / Novel": [
        "A 20-chapter fantasy novel titled '[Book Title]' about a reluctant [Protagonist's Role] named "
        "[Character Name] who must master a lost form of magic to save their kingdom from a creeping blight.",
        "A thriller novel about a software developer who discovers a dangerous secret in their company's "
        "code. Plan the story in three acts: The Discovery, The Chase, and The Confrontation.",
    ],
    "Movie / Film Project": [
        "A screenplay for a thriller movie titled '[Movie Title]' about a cryptographer who uncovers a "
        "digital conspiracy. Outline the three acts: the puzzle, the rising stakes, the final confrontation.",
        "A sci-fi adventure film where a team of explorers discovers a new planet. Outline the major plot "
        "points: The Arrival, The Discovery of life, The First Contact Conflict, and The Escape.",
    ],
    "YouTube Series": [
        "A 4-part YouTube documentary series about [Historical Event]. The first video sets the context, "
        "the next two cover the main events in detail, and the final video analyzes the consequences.",
        "An 8-video educational YouTube series explaining the fundamentals of [Subject]. Each video "
        "should break down one core concept.",
    ],
    "Course / Curriculum": [
        "A 5-module online course on '[Your Skill]'. Module 1 covers the basics, Modules 2-4 cover core "
        "concepts with practical exercises, and Module 5 is a final project.",
        "A 10-lesson curriculum for a workshop on [Topic]. Each lesson should have a clear objective, "
        "a main content section, and a practical activity.",
    ],
    "Marketing Campaign": [
        "A 4-phase marketing campaign for the launch of a [Product Type]: Teaser, Launch Announcement "
        "with influencer collaborations, Customer Stories, and a Special Offer.",
    ],
    "Music Album": [
        "A 10-track concept album for a [Genre] band that tells a story about [Concept]. Suggest a title "
        "and theme for each track, creating a cohesive narrative arc.",
        "A 12-track indie folk album focused on themes of nature and change, one track per month of the year.",
    ],
    "Stage Play": [
        "A three-act stage play about a family reunion that unearths a long-held secret. Act 1: The cheerful "
        "arrival. Act 2: The secret is revealed. Act 3: The aftermath and resolution.",
    ],
    "Game Narrative": [
        "A 5-quest main storyline for an RPG. Quest 1 is the 'Call to Adventure'. Quests 2-4 are trials to "
        "gather [MacGuffins]. Quest 5 is the final boss battle.",
    ],
    "Recipe Builder": [
        "A 7-step recipe for [Your Dish]: Ingredients, Prep Work, Cooking the Main Component, Preparing the "
        "Sauce, Combining, Plating, and Serving Suggestions.",
    ],
    "Academic Paper": [
        "An academic paper on [Your Topic] with sections for an Abstract, Introduction, Literature Review, "
        "Methodology, Results, Discussion, and Conclusion.",
    ],
    "Pitch Deck": [
        "A 10-slide pitch deck for a startup called '[Startup Name]' covering Problem, Solution, Market Size, "
        "Product Demo, Business Model, Team, Competition, Financial Projections, and The Ask.",
    ],
    "Challenge Tracker": [
        "A 30-day challenge to learn [New Skill]. Break it down into 4 weekly goals, with daily tasks for each week.",
    ],
    "Default": [
        "A 5-part project exploring [Your Topic]. Part 1 is an introduction, Parts 2-4 are deep dives into "
        "specific sub-topics, and Part 5 is a summary and conclusion.",
        "A 7-step plan for completing [Your Project]. Break the project into seven distinct, actionable stages.",
        "A 3-phase project plan: Discovery and Strategy, Development and Implementation, Launch and Review.",
    ],
}
PROMPT_LIBRARY["Vlog Series"] = PROMPT_LIBRARY["YouTube Series"]


def random_idea(category: Optional[str], rng: Optional[random.Random] = None) -> str:
    prompts = PROMPT_LIBRARY.get(category or "") or PROMPT_LIBRARY.get("Default") or []
    if not prompts:
        return FALLBACK_IDEA
    return (rng or random).choice(prompts)


def make_enhance_prompt(idea: str) -> str:
    return (
        "You are a creative expert and prompt engineer for an application called PlotForm. "
        "A user has provided a basic idea. Rewrite and expand it into a more detailed and polished "
        "prompt that will produce the best possible structured plan.\n\n"
        f'User\'s idea:\n"{idea}"\n\n'
        "Instructions:\n"
        "- Add structure: suggest a number of parts or items and what each should cover.\n"
        "- Add detail: tone, target audience and format where they are implied.\n"
        "- Maintain the core idea. Enhance, don't replace.\n"
        "- Keep it to a single paragraph.\n\n"
        'Respond with JSON of the form {"prompt": "<the rewritten prompt>"}.'
    )


async def enhance_idea(
    run_id: str,
    idea: str,
    *,
    caller: BackoffCaller,
    on_retry: Optional[RetryObserver] = None,
) -> str:
    data = await caller.call(make_enhance_prompt(idea), run_id=run_id, where="enhance", on_retry=on_retry)
    prompt = data.get("prompt") if isinstance(data, dict) else None
    if not isinstance(prompt, str) or not prompt.strip():
        raise ShapeError("The AI could not enhance the idea at this time.")
    logger.info("enhanced idea (%d -> %d chars)", len(idea), len(prompt))
    return prompt.strip()
