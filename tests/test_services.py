"""
Unit tests for chat safety checks, prompt assembly, vision reply parsing
and the health backup.
"""

import pytest
from datetime import datetime, timedelta, timezone

from diamate.models import ChatMessage
from diamate.services import (
    build_system_prompt, crisis_response, extract_json_object, is_crisis_message,
    last_user_message, mentions_dose, parse_vision_reply, vision_prompt, with_dose_disclaimer,
    VisionParseError, parse_days, save_meals, save_readings, summarize_health, valid_readings,
)


class TestCrisisDetection:
    """Tests for the crisis short-circuit patterns."""

    @pytest.mark.parametrize("text", [
        "I want to kill myself",
        "Thinking about SUICIDE lately",
        "intihar etmeyi düşünüyorum",
        "kendimi öldürmek istiyorum",
        "aşırı doz insülin alsam ne olur",
        "aşırıdoz",
        "what happens with an overdose of insulin",
    ])
    def test_matches(self, text):
        assert is_crisis_message(text) is True

    @pytest.mark.parametrize("text", [
        "How many units for 60g of carbs?",
        "Dozumu nasıl ayarlarım?",
        "",
        None,
    ])
    def test_does_not_match(self, text):
        assert is_crisis_message(text) is False

    def test_crisis_response_localized(self):
        assert "emergency services (112)" in crisis_response("en")
        assert crisis_response("tr").startswith("🆘 Acil bir durumda")
        assert crisis_response("de") == crisis_response("tr")

    def test_last_user_message(self):
        messages = [
            ChatMessage(role="user", content="first"),
            ChatMessage(role="assistant", content="reply"),
            ChatMessage(role="user", content="second"),
            ChatMessage(role="assistant", content="another reply"),
        ]
        assert last_user_message(messages) == "second"
        assert last_user_message([{"role": "user", "content": "dict form"}]) == "dict form"
        assert last_user_message([{"role": "assistant", "content": "only assistant"}]) is None


class TestDoseDisclaimer:
    """Tests for the dose disclaimer suffix."""

    @pytest.mark.parametrize("text", [
        "Take 4 units before the meal.",
        "6u hızlı etkili insülin",
        "Toplam 7 ünite yapın",
        "about 10 IU",
        "2 unit",
    ])
    def test_mentions_dose(self, text):
        assert mentions_dose(text) is True

    @pytest.mark.parametrize("text", [
        "Your average is 142 mg/dL.",
        "Walk for 30 minutes after dinner.",
        "Eat 15g of fast carbs.",
    ])
    def test_no_dose(self, text):
        assert mentions_dose(text) is False

    def test_disclaimer_appended(self):
        result = with_dose_disclaimer("Take 4 units.", "en")
        assert result == (
            "Take 4 units."
            "\n\n⚠️ *This is a calculated suggestion. Always verify with your healthcare provider.*"
        )

    def test_text_without_dose_unchanged(self):
        assert with_dose_disclaimer("Drink water.", "tr") == "Drink water."


class TestPrompts:
    """Tests for prompt assembly."""

    def test_base_prompt_by_language(self):
        assert build_system_prompt("en").endswith("Respond in English.")
        assert build_system_prompt("tr").endswith("Türkçe yanıt ver.")
        assert build_system_prompt("fr") == build_system_prompt("tr")

    def test_personalization_blocks(self):
        prompt = build_system_prompt("en", {
            "profileFacts": {
                "icr": 12, "isf": 45, "targetLow": 70, "targetHigh": 180,
                "insulinType": "aspart", "activeInsulinHours": 4,
            },
            "stats": {"avgBG": 155, "timeInRangePct": 64, "hypoEvents": 0, "hyperEvents": 3, "mealsLogged": 11},
            "memorySummary": "Prefers metric units. Runs in the morning.",
        })
        assert "## User's Insulin Settings:" in prompt
        assert "- Carb Ratio (ICR): 1:12" in prompt
        assert "- Correction Factor (ISF): 1:45" in prompt
        assert "- Target Range: 70-180 mg/dL" in prompt
        assert "- Insulin Type: aspart" in prompt
        assert "- Active Insulin Duration: 4 h" in prompt
        assert "## User's Recent 7-Day Data:" in prompt
        assert "- Time in Range: 64%" in prompt
        assert "- Hypo Events: 0" in prompt
        assert "- Meals Logged: 11" in prompt
        assert "Runs in the morning." in prompt

    def test_missing_stats_render_as_na(self):
        prompt = build_system_prompt("en", {"stats": {"readingsCount": 3}})
        assert "- Average BG: N/A mg/dL" in prompt
        assert "- Time in Range: N/A%" in prompt

    def test_empty_context_adds_nothing(self):
        assert build_system_prompt("en", {}) == build_system_prompt("en")
        assert build_system_prompt("en", None) == build_system_prompt("en")

    def test_target_range_needs_both_bounds(self):
        prompt = build_system_prompt("en", {"profileFacts": {"targetLow": 80}})
        assert "Target Range" not in prompt

    def test_vision_prompt(self):
        assert "lahmacun (~30g KH)" in vision_prompt("tr")
        assert "bulgur pilavı (~35g KH)" in vision_prompt("tr")
        assert "return ONLY valid JSON" in vision_prompt("en")
        assert "lahmacun" not in vision_prompt("en")


class TestVisionParser:
    """Tests for extracting and defaulting the vision reply."""

    def test_extracts_object_from_prose(self):
        text = 'Sure! Here is the analysis:\n```json\n{"items": [], "total_carbs_g": 30}\n```\nEnjoy.'
        assert extract_json_object(text) == '{"items": [], "total_carbs_g": 30}'

    def test_first_balanced_object_only(self):
        text = '{"a": {"b": 1}} and later {"c": 2}'
        assert extract_json_object(text) == '{"a": {"b": 1}}'

    def test_braces_inside_strings(self):
        text = '{"notes": "avoid {sugary} drinks \\" }", "confidence": "low"} trailing }'
        assert extract_json_object(text) == '{"notes": "avoid {sugary} drinks \\" }", "confidence": "low"}'

    def test_no_object(self):
        assert extract_json_object("no json here") is None
        assert extract_json_object('{"unterminated": 1') is None
        assert extract_json_object(None) is None

    def test_defaults_fill_missing_fields(self):
        result = parse_vision_reply('{"items": [{"name": "simit", "carbs_g": 45}], "total_carbs_g": 45}')
        assert result == {
            "items": [{"name": "simit", "carbs_g": 45}],
            "total_carbs_g": 45,
            "total_calories": 0,
            "total_protein_g": 0,
            "total_fat_g": 0,
            "total_fiber_g": 0,
            "glycemicImpact": "medium",
            "notes": "",
            "confidence": "medium",
        }

    def test_null_values_take_defaults(self):
        result = parse_vision_reply('{"items": null, "notes": null, "glycemicImpact": ""}')
        assert result["items"] == []
        assert result["notes"] == ""
        assert result["glycemicImpact"] == "medium"

    def test_defaults_are_not_shared(self):
        first = parse_vision_reply("{}")
        first["items"].append({"name": "mutated"})
        assert parse_vision_reply("{}")["items"] == []

    def test_unparseable_reply_raises(self):
        with pytest.raises(VisionParseError):
            parse_vision_reply("I can't identify this food.")

    def test_invalid_json_raises(self):
        with pytest.raises(VisionParseError):
            parse_vision_reply("{items: [1, 2]}")


NOW = datetime(2026, 5, 20, 12, 0, tzinfo=timezone.utc)


def _reading(minutes_ago, mgdl, **extra):
    return {"mgdl": mgdl, "timestamp": (NOW - timedelta(minutes=minutes_ago)).isoformat(), **extra}


class TestHealthBackup:
    """Tests for the server-side reading and meal backup."""

    def test_valid_readings(self):
        readings, skipped = valid_readings([_reading(1, 120), _reading(2, 999.5), _reading(3, 1000), {"mgdl": 5}])
        assert [r.mgdl for r in readings] == [120, 999.5]
        assert skipped == 2

    def test_duplicates_within_batch(self, db_session):
        batch = [_reading(5, 120), _reading(5, 130), _reading(10, 140)]
        assert save_readings(db_session, "u1", batch, now=NOW) == (2, 0)
        assert save_readings(db_session, "u1", batch, now=NOW) == (0, 0)

    def test_same_instant_other_offset_is_duplicate(self, db_session):
        save_readings(db_session, "u1", [{"mgdl": 120, "timestamp": "2026-05-20T12:00:00+03:00"}], now=NOW)
        inserted, _ = save_readings(db_session, "u1", [{"mgdl": 120, "timestamp": "2026-05-20T09:00:00Z"}], now=NOW)
        assert inserted == 0

    def test_meals_by_id(self, db_session):
        meals = [{"id": "a", "timestamp": NOW.isoformat(), "totalCarbs": 30}, {"id": "a", "timestamp": NOW.isoformat()},
                 {"totalCarbs": 10}]
        assert save_meals(db_session, "u1", meals, now=NOW) == (1, 1)
        assert save_meals(db_session, "u2", meals, now=NOW) == (1, 1)

    @pytest.mark.parametrize("value, days", [(None, 7), ("30", 30), ("0", 1), ("365", 90), ("-4", 1), ("x", 7)])
    def test_parse_days(self, value, days):
        assert parse_days(value) == days

    def test_summary_window(self, db_session):
        save_readings(db_session, "u1", [
            _reading(30, 65, source="dexcom"),
            _reading(60, 100),
            _reading(60 * 24 * 3, 260),
        ], now=NOW)

        result = summarize_health(db_session, "u1", days=1, include_readings=True, now=NOW)
        summary = result["summary"]
        assert summary["totalReadings"] == 2
        assert summary["avgBG"] == 83  # (65 + 100) / 2 = 82.5
        assert summary["timeInRangePct"] == 50
        assert summary["hypoEvents"] == 1
        assert summary["hyperEvents"] == 0
        assert summary["sources"] == ["dexcom", "manual"]
        assert datetime.fromisoformat(summary["lastReadingAt"]) == NOW - timedelta(minutes=30)
        assert [r["mgdl"] for r in result["readings"]] == [65, 100]

        assert summarize_health(db_session, "u1", days=7, now=NOW)["summary"]["hyperEvents"] == 1
