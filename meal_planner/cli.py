"""Thin CLI for generating shopping lists and meal ideas against a running server."""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, Optional

import httpx


def _default_api_base() -> str:
    return os.environ.get("MEAL_PLANNER_API_BASE", "http://localhost:8000/v1")


def _default_token() -> str:
    return os.environ.get("MEAL_PLANNER_TOKEN", "")


def _request(
    method: str,
    endpoint: str,
    payload: Optional[Dict[str, Any]] = None,
    *,
    api_base: str,
    token: str,
    timeout: float = 15.0,
) -> Dict[str, Any]:
    url = endpoint if endpoint.startswith("http") else f"{api_base.rstrip('/')}/{endpoint.lstrip('/')}"
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    with httpx.Client(timeout=timeout) as client:
        resp = client.request(method, url, headers=headers, json=payload)
    try:
        data = resp.json()
    except ValueError:
        data = {"error": resp.text}
    if resp.status_code >= 400:
        raise SystemExit(f"[{resp.status_code}] {json.dumps(data, indent=2)}")
    return data


def _print_shopping_list(data: Dict[str, Any]) -> None:
    shopping_list = data.get("shopping_list") or {}
    if data.get("message"):
        print(data["message"])
    current = None
    for item in shopping_list.get("items", []):
        if item.get("category") != current:
            current = item.get("category")
            print(f"\n[{current}]")
        staple = " (staple)" if item.get("is_staple") else ""
        print(f"  {item['quantity']:g} {item.get('unit') or ''} {item['name']}{staple}".rstrip())
    total = shopping_list.get("total_estimated_cost")
    if total is not None:
        print(f"\nEstimated total: {total:.2f}")


def cmd_shopping_list(args: argparse.Namespace, api_base: str, token: str) -> None:
    payload = {"meal_plan_id": args.meal_plan_id, "household_id": args.household_id}
    data = _request("POST", "/shopping-lists/generate", payload, api_base=api_base, token=token)
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        _print_shopping_list(data)


def cmd_show_list(args: argparse.Namespace, api_base: str, token: str) -> None:
    data = _request("GET", f"/shopping-lists/{args.meal_plan_id}", api_base=api_base, token=token)
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        _print_shopping_list(data)


def cmd_list_status(args: argparse.Namespace, api_base: str, token: str) -> None:
    endpoint = f"/shopping-lists/{args.shopping_list_id}/status"
    data = _request("PATCH", endpoint, {"status": args.status}, api_base=api_base, token=token)
    print(json.dumps(data, indent=2))


def cmd_generate_meals(args: argparse.Namespace, api_base: str, token: str) -> None:
    payload = {
        "household_id": args.household_id,
        "group_ids": args.group,
        "meal_categories": args.category,
        "preferences": args.prefer,
        "exclude_ingredients": args.exclude,
        "meal_count": args.count,
    }
    data = _request(
        "POST",
        "/meals/generate",
        payload,
        api_base=api_base,
        token=token,
        timeout=120.0,
    )
    print(json.dumps(data, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Meal planner helper for shopping lists and meal ideas.")
    parser.add_argument(
        "--api-base",
        default=_default_api_base(),
        help="Base API URL (default: %(default)s or MEAL_PLANNER_API_BASE).",
    )
    parser.add_argument(
        "--token",
        default=_default_token(),
        help="Bearer token (default: MEAL_PLANNER_TOKEN env).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sl = sub.add_parser("shopping-list", help="Generate (or fetch) the shopping list for a meal plan.")
    sl.add_argument("meal_plan_id", help="Meal plan ID.")
    sl.add_argument("household_id", help="Household owning the meal plan.")
    sl.add_argument("--json", action="store_true", help="Print the raw JSON response.")

    show = sub.add_parser("show-list", help="Show the stored shopping list for a meal plan.")
    show.add_argument("meal_plan_id", help="Meal plan ID.")
    show.add_argument("--json", action="store_true", help="Print the raw JSON response.")

    st = sub.add_parser("list-status", help="Change a shopping list's status.")
    st.add_argument("shopping_list_id", help="Shopping list ID.")
    st.add_argument("status", choices=["draft", "generated", "exported"], help="New status.")

    gm = sub.add_parser("generate-meals", help="Ask the model for new meal ideas.")
    gm.add_argument("household_id", help="Household ID.")
    gm.add_argument("--group", action="append", default=[], help="Group ID (repeatable).")
    gm.add_argument(
        "--category",
        action="append",
        default=[],
        help="Meal category, e.g. whole_house or breakfast (repeatable).",
    )
    gm.add_argument("--prefer", action="append", default=[], help="Preference (repeatable).")
    gm.add_argument("--exclude", action="append", default=[], help="Ingredient to avoid (repeatable).")
    gm.add_argument("--count", type=int, default=None, help="Number of meals to generate.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    token = args.token or _default_token()
    if not token:
        parser.error("Missing bearer token. Pass --token or set MEAL_PLANNER_TOKEN.")
    api_base = args.api_base or _default_api_base()

    if args.command == "shopping-list":
        cmd_shopping_list(args, api_base, token)
    elif args.command == "show-list":
        cmd_show_list(args, api_base, token)
    elif args.command == "list-status":
        cmd_list_status(args, api_base, token)
    elif args.command == "generate-meals":
        if not args.category:
            parser.error("generate-meals needs at least one --category")
        cmd_generate_meals(args, api_base, token)
    else:  # pragma: no cover
        parser.error(f"Unknown command {args.command}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
