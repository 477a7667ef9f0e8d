"""Generate a synthetic dating message history for development and testing."""

from __future__ import annotations

import argparse
import json
import random
from datetime import UTC, datetime, timedelta
from pathlib import Path

from datelens.schemas import Dataset, MatchContext, Message

MOCK_USER_ID = "user-0001"


def _scenario(
    *,
    scenario: str,
    days_ago: int,
    span_days: int,
    lines: list[tuple[str, str]],
    repeat: int = 1,
) -> dict:
    return {
        "scenario": scenario,
        "days_ago": days_ago,
        "span_days": span_days,
        "lines": lines,
        "repeat": repeat,
    }


# Each line is (direction, body). `repeat` cycles the lines to build longer threads.
_SCENARIOS: list[dict] = [
    _scenario(
        scenario="coffee_date",
        days_ago=12,
        span_days=6,
        lines=[
            ("match", "Hey! Loved your hiking photos, is that Mount Tam?"),
            ("user", "It is! Do you hike much?"),
            ("match", "Most weekends. I'm always looking for new trails."),
            ("user", "I know a great one near the coast, happy to share."),
            ("match", "Please do. Also, want to grab coffee this Saturday?"),
            ("user", "I'd love that. Blue Bottle on Valencia at 10?"),
            ("match", "Perfect, see you there."),
            ("user", "Had a really nice time today, thanks for the coffee."),
            ("match", "Me too! Let's do the coastal trail next."),
            ("user", "Deal. Here's my number so we can plan, 555-0142."),
        ],
    ),
    _scenario(
        scenario="long_connection",
        days_ago=20,
        span_days=45,
        lines=[
            ("match", "How was your week? You mentioned the big presentation."),
            ("user", "It went well, I was nervous but it landed."),
            ("match", "I'm proud of you. I know how much you prepared."),
            ("user", "Thanks, that means a lot. How is your sister doing?"),
            ("match", "Better. The hospital visits are tiring but she's recovering."),
            ("user", "I'm glad. Let me know if you need someone to talk to."),
        ],
        repeat=10,
    ),
    _scenario(
        scenario="pushy_match",
        days_ago=4,
        span_days=2,
        lines=[
            ("match", "You're beautiful. I think I'm already falling for you."),
            ("user", "Ha, we just started talking, but thank you."),
            ("match", "Why didn't you answer me last night? I waited for hours."),
            ("user", "I was out with friends, I don't check my phone much."),
            ("match", "You shouldn't need them when you have me."),
            ("match", "I'm stuck abroad and my card got blocked. Can you send $300?"),
            ("user", "I'm not comfortable sending money to someone I haven't met."),
            ("match", "If you really cared you would help me. Don't make me regret this."),
        ],
    ),
    _scenario(
        scenario="short_fizzle",
        days_ago=30,
        span_days=1,
        lines=[
            ("user", "Hi! How's your weekend going?"),
            ("match", "Good thanks"),
        ],
    ),
    _scenario(
        scenario="old_relationship",
        days_ago=700,
        span_days=60,
        lines=[
            ("user", "Sorry I didn't reply, I get anxious when I don't know where we stand."),
            ("match", "It's okay. I just need a bit of space sometimes."),
            ("user", "Did I do something wrong? You've been quiet all day."),
            ("match", "No, work is just busy. I'll call you later."),
            ("user", "Okay. I miss you, I keep checking my phone."),
            ("match", "I miss you too, talk tonight."),
        ],
        repeat=3,
    ),
    _scenario(
        scenario="ghosted",
        days_ago=420,
        span_days=3,
        lines=[
            ("user", "That taco place you mentioned sounds amazing."),
            ("match", "Right? We should go sometime."),
            ("user", "I'm free Thursday if you are!"),
            ("user", "No worries if not, hope your week is good."),
        ],
    ),
]


def _build_messages(
    template: dict,
    *,
    match_number: int,
    now: datetime,
    rng: random.Random,
) -> list[Message]:
    """Spread a scenario's lines across its span, ending `days_ago` before `now`."""

    lines = template["lines"] * template["repeat"]
    match_id = f"match-{match_number:03d}"
    partner_id = f"partner-{match_number:03d}"
    end = now - timedelta(days=template["days_ago"])
    start = end - timedelta(days=template["span_days"])
    step = (end - start) / max(len(lines) - 1, 1)

    messages: list[Message] = []
    for index, (direction, body) in enumerate(lines):
        jitter = timedelta(minutes=rng.randint(0, 45))
        sent_at = min(start + step * index + jitter, end)
        messages.append(
            Message(
                id=f"{match_id}-msg-{index + 1:04d}",
                match_id=match_id,
                sender_id=MOCK_USER_ID if direction == "user" else partner_id,
                sent_at=sent_at,
                body=body,
                direction=direction,
            )
        )
    return messages


def generate_mock_dataset(
    *,
    seed: int = 7,
    now: datetime | None = None,
    platform: str = "mock",
) -> Dataset:
    """Generate a deterministic dataset for a fixed `seed` and `now`."""

    rng = random.Random(seed)
    current = now or datetime.now(UTC)
    messages: list[Message] = []
    matches: list[MatchContext] = []
    for match_number, template in enumerate(_SCENARIOS, start=1):
        thread = _build_messages(template, match_number=match_number, now=current, rng=rng)
        messages.extend(thread)
        matches.append(
            MatchContext(
                id=thread[0].match_id,
                created_at=thread[0].sent_at - timedelta(hours=rng.randint(1, 48)),
                participants=[MOCK_USER_ID, f"partner-{match_number:03d}"],
            )
        )

    messages.sort(key=lambda message: message.sent_at)
    return Dataset(user_id=MOCK_USER_ID, platform=platform, messages=messages, matches=matches)


def write_mock_messages(path: str | Path, dataset: Dataset) -> Path:
    """Write a dataset's messages as JSONL in the loader's input format."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        for message in dataset.messages:
            record = message.model_dump(mode="json", by_alias=True)
            handle.write(json.dumps(record, ensure_ascii=True) + "\n")
    return target


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="datelens-mock-data",
        description="Generate a mock message history as JSONL.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=7,
        help="Deterministic generation seed.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/mock/messages.jsonl",
        help="Output JSONL path.",
    )
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    dataset = generate_mock_dataset(seed=args.seed)
    out_path = write_mock_messages(args.output, dataset)
    print(
        f"Generated {len(dataset.messages)} mock messages across "
        f"{len(dataset.matches)} matches at {out_path}"
    )


if __name__ == "__main__":
    main()
