from typing import Dict, List, Optional

from plotform.config import DEFAULT_CATEGORY
from plotform.generate.plan_dto import Category


def _cat(name: str, group: str, item: str, sub_item: str, checklist: List[str]) -> Category:
    return Category(
        name=name,
        group_label=group,
        item_label=item,
        sub_item_label=sub_item,
        default_checklist=checklist,
    )


BUILTIN_CATEGORIES: List[Category] = [
    _cat("Podcast", "Season", "Episode", "Segment",
         ["Finalize audio edit", "Write show notes", "Schedule social media posts", "Upload to hosting platform"]),
    _cat("Movie / Film Project", "Film Project", "Scene", "Shot",
         ["Final color grade", "Complete sound mix", "Render final master", "Create trailer", "Submit to festivals"]),
    _cat("Book / Novel", "Series / Volume", "Chapter", "Section",
         ["Final proofread", "Format for eBook", "Finalize cover art", "Submit to agent/publisher"]),
    _cat("Stage Play", "Production", "Act", "Scene",
         ["Finalize set design", "Complete lighting plan", "Print playbills", "Final dress rehearsal"]),
    _cat("Vlog Series", "Series", "Vlog", "Segment",
         ["Gather B-roll footage", "Create thumbnail", "Write description & tags", "Schedule upload to YouTube"]),
    _cat("Game Narrative", "Game Project", "Questline", "Objective",
         ["Integrate voice-over", "Final script localization", "Write patch notes", "Launch on store"]),
    _cat("Course / Curriculum", "Course", "Module", "Lesson",
         ["Record video lessons", "Create downloadable resources", "Build final quiz", "Publish to platform"]),
    _cat("YouTube Series", "Season", "Video", "Segment",
         ["Finalize video edit", "Create thumbnail", "Write description and tags", "Schedule upload"]),
    _cat("Live Stream Series", "Series", "Stream", "Segment",
         ["Prepare on-screen assets", "Promote on social media", "Check A/V setup", "Upload VOD with chapters"]),
    _cat("Magazine / Newsletter", "Volume", "Issue", "Article",
         ["Final copyedit", "Source images", "Schedule email send", "Post to archive"]),
    _cat("Music Album", "Album", "Track", "Verse/Chorus",
         ["Finalize master track", "Register with PRO", "Create album art", "Distribute to streaming"]),
    _cat("Event Planning", "Event", "Phase", "Task",
         ["Confirm vendor bookings", "Send invitations", "Finalize schedule", "Post-event survey"]),
    _cat("App Development", "Project", "Feature", "Task",
         ["Pass all unit tests", "Run regression tests", "Merge to main branch", "Deploy to production"]),
    _cat("Interactive Fiction", "Story", "Branch", "Choice Point",
         ["Test all story branches", "Proofread all text", "Export for web", "Publish online"]),
    _cat("Wellness Program", "Program", "Week", "Daily Focus",
         ["Prepare weekly materials", "Schedule check-in emails", "Review participant feedback", "Plan next program"]),
    _cat("Personal Journal", "Volume", "Entry", "Section",
         ["Review and tag entry", "Add relevant photos", "Cross-reference other entries"]),
    _cat("Marketing Campaign", "Campaign", "Phase", "Asset",
         ["Launch all assets", "Monitor campaign KPIs", "Compile performance report", "Plan post-campaign actions"]),
    _cat("Recipe Builder", "Cookbook", "Recipe", "Step",
         ["Finalize recipe measurements", "Take final photos", "Write introduction", "Publish to blog/book"]),
    _cat("Academic Paper", "Field", "Paper", "Section",
         ["Format citations", "Address reviewer comments", "Final proofread", "Submit to journal"]),
    _cat("Pitch Deck", "Company", "Pitch Deck", "Slide",
         ["Finalize slide design", "Practice pitch timing", "Prepare for Q&A", "Send follow-up emails"]),
    _cat("Challenge Tracker", "Program", "Week", "Day",
         ["Set weekly goal", "Log daily progress", "Complete weekly review", "Share results"]),
]

_BY_NAME: Dict[str, Category] = {c.name.lower(): c for c in BUILTIN_CATEGORIES}


def find_category(name: Optional[str], categories: Optional[List[Category]] = None) -> Optional[Category]:
    """Case-insensitive lookup; None when the name is unknown."""
    if not name:
        return None
    key = name.strip().lower()
    if categories is None:
        return _BY_NAME.get(key)
    for c in categories:
        if c.name.lower() == key:
            return c
    return None


def default_category() -> Category:
    return find_category(DEFAULT_CATEGORY) or BUILTIN_CATEGORIES[0]
