from __future__ import annotations

from typing import Optional

from gatekeeper.models.census import Unit
from gatekeeper.services.registry import AssignFailure

_EXAMPLES = "Examples:\n• P2 2D Juan Pérez\n• P3 BAJO C Ana López"

_REASONS = {
    AssignFailure.NOT_FOUND: "That unit does not exist in the census",
    AssignFailure.DISABLED: "That unit is not enabled yet",
}


def humanize_seconds(seconds: float) -> str:
    if seconds >= 3600 and seconds % 3600 == 0:
        hours = int(seconds // 3600)
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    if seconds >= 60:
        minutes = int(round(seconds / 60))
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{int(seconds)} seconds"


class Prompts:
    """Chat texts, greeting people by display name or a fallback label."""

    def __init__(
        self,
        community_name: str = "the community",
        fallback_name: str = "neighbor",
        deregister_seconds: float = 3600.0,
    ) -> None:
        self.community = community_name
        self.fallback = fallback_name
        self.deregister_seconds = deregister_seconds

    def _who(self, display: Optional[str]) -> str:
        return display or self.fallback

    # Group verification flow

    def welcome(self, display: str) -> str:
        return (
            f"👋 Welcome *{self._who(display)}*.\n"
            f"I am the 🤖 bot of *{self.community}*. This group is for residents only. "
            f"Are you an owner or resident of *{self.community}*? Please answer *Yes* or *No*, thanks."
        )

    def ask_unit(self, display: str) -> str:
        return (
            f"Great, *{self._who(display)}* ✅\n"
            "Please send your *unit* in one line: building, level+door and your *name*.\n"
            f"{_EXAMPLES}"
        )

    def repeat_yes_no(self, display: str) -> str:
        return f"Please answer *Yes* or *No*, *{self._who(display)}*."

    def rejected(self, display: str) -> str:
        return (
            f"Thanks, *{self._who(display)}*. This group is only for the community. "
            "Sorry for the inconvenience, you will be removed."
        )

    def timed_out(self, display: str, window_seconds: float) -> str:
        return (
            f"⏰ *{self._who(display)}* did not complete the verification in time "
            f"({humanize_seconds(window_seconds)}). They will be removed from the group."
        )

    def door_not_valid(self, display: str) -> str:
        return f"That unit does not exist in the census (door not valid), *{self._who(display)}*."

    def unit_detected_name_missing(self, hint: str) -> str:
        return f"Valid unit detected, your *name* is missing.\nSend: {hint}"

    def name_missing(self, display: str, hint: str) -> str:
        return f"I am missing your *name*, *{self._who(display)}*.\nSend: {hint}"

    def not_understood(self, display: str) -> str:
        return f"I could not understand the unit, *{self._who(display)}*.\n{_EXAMPLES}"

    def assign_failed(self, reason: Optional[AssignFailure], capacity: int, display: Optional[str] = None) -> str:
        if reason == AssignFailure.FULL:
            text = f"⚠️ That unit already has the maximum of {capacity} people"
        else:
            text = _REASONS.get(reason, "I could not register the unit (unknown error)")
        if display is None:
            return f"{text}."
        return f"{text}, *{self._who(display)}*."

    def verified(self, display: str, unit: Unit) -> str:
        return (
            f"✅ *{display or self.fallback.capitalize()}* verified and registered.\n"
            f"Unit: {unit.describe()}. *Welcome to {self.community}!*"
        )

    # Private channel

    def my_unit(self, unit: Unit) -> str:
        return f"Your registered unit is: {unit.describe()}."

    def deregistered(self, delay_seconds: float) -> str:
        return (
            "You have been removed from the census. "
            f"You will be removed from the group in {humanize_seconds(delay_seconds)}."
        )

    def register_format(self) -> str:
        return "Format: REGISTER BUILDING LEVEL DOOR + Your Name. E.g.: REGISTER P2 2D Juan Pérez"

    def registered(self, name: str, unit: Unit) -> str:
        return f"✅ Registered: {name} → {unit.describe()}."

    def help(self, is_resident: bool) -> str:
        if is_resident:
            return (
                f"👋 Hi. You are already registered in *{self.community}*.\n"
                "You can use:\n"
                "• MY_UNIT → show your unit\n"
                "• DEREGISTER → delete your registration (you will be removed from the group in "
                f"{humanize_seconds(self.deregister_seconds)})\n"
                "• REGISTER BUILDING LEVEL DOOR + \"Your Name\" → change your registration\n"
                "Examples: REGISTER P2 2D Juan Pérez | REGISTER P3 BAJO C Ana López"
            )
        return (
            f"👋 Hi. I am the bot of *{self.community}*.\n"
            "Verification happens *in the group* after you join through the invite link.\n"
            "If you already joined and the bot wrote to you in the group, answer there.\n\n"
            "Once verified you can use in private:\n"
            "• MY_UNIT | DEREGISTER | REGISTER BUILDING LEVEL DOOR + Your Name"
        )
