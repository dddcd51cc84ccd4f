"""
finance-buddy command line.

    finance-buddy init-db [--seed]
    finance-buddy chat [--user demo-user]
    finance-buddy analyze [--user demo-user] [--year 2026]
    finance-buddy plot-flow [--html out.html]
    finance-buddy serve [--port 5013]
"""

import argparse
import json
import sys

from finance_buddy.db import queries, schema


def cmd_init_db(args) -> int:
    schema.main(args.db, seed=args.seed)
    return 0


def cmd_chat(args) -> int:
    """Interactive chat loop."""
    from finance_buddy.agents.assistant import FinanceAssistant
    from finance_buddy.core.profile import missing_profile_fields

    profile = queries.get_user_profile(args.user)
    if profile is None:
        print(f"Unknown user '{args.user}'. Run 'finance-buddy init-db --seed' first.")
        return 1

    assistant = FinanceAssistant(user_id=args.user, profile=profile)
    missing = missing_profile_fields(profile)

    print("\n" + "-" * 70)
    print(f"💰 Finance Buddy - olá, {profile.name or args.user}!")
    print("Pergunte sobre gastos, economias, investimentos, metas ou dívidas.")
    if missing:
        print(f"Perfil incompleto: {', '.join(missing)}")
    print("-" * 70)
    print("Commands: 'exit', 'quit' to close | 'clear' to reset | 'summary' for stats\n")

    while True:
        try:
            question = input("You 👤: ").strip()
        except EOFError:
            break

        if question.lower() in ("quit", "exit", "end"):
            break
        if question.lower() == "clear":
            assistant.clear_messages()
            print("\n Conversation cleared.\n")
            continue
        if question.lower() == "summary":
            print(json.dumps(assistant.get_conversation_summary(), indent=2, ensure_ascii=False))
            continue
        if not question:
            continue

        reply = assistant.send_message(question)
        print(f"\n🤖 Finance Buddy: {reply['message']}")
        for rec in reply["data"].get("recommendations", []):
            print(f"   • {rec}")
        print()

    print("\n👋 Até logo!\n")
    return 0


def cmd_analyze(args) -> int:
    from finance_buddy.flows.base import FlowError
    from finance_buddy.flows.financial_analysis import run_financial_analysis

    try:
        report = run_financial_analysis(args.user, args.year)
    except FlowError as e:
        print(f"❌ {e.message}")
        return 1
    print(json.dumps(report, indent=2, ensure_ascii=False, default=str))
    return 0


def cmd_plot_flow(args) -> int:
    from finance_buddy.flows.financial_analysis import FinancialAnalysisFlow

    flow = FinancialAnalysisFlow()
    if args.html:
        with open(args.html, "w", encoding="utf-8") as f:
            f.write(flow.plot_html())
        print(f"📊 Flow plot saved to: {args.html}")
    else:
        print(json.dumps(flow.plot(), indent=2))
    return 0


def cmd_serve(args) -> int:
    from finance_buddy.server import main as serve

    serve(host=args.host, port=args.port, debug=args.debug)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="finance-buddy", description="Finance Buddy assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create the SQLite schema")
    p.add_argument("--db", default=None, help="Database path (defaults to FINANCE_BUDDY_DB)")
    p.add_argument("--seed", action="store_true", help="Insert a demo user with sample data")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("chat", help="Chat with the assistant in the terminal")
    p.add_argument("--user", default=schema.DEMO_USER_ID)
    p.set_defaults(func=cmd_chat)

    p = sub.add_parser("analyze", help="Run the financial analysis flow")
    p.add_argument("--user", default=schema.DEMO_USER_ID)
    p.add_argument("--year", type=int, default=None)
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("plot-flow", help="Show the analysis flow graph")
    p.add_argument("--html", default=None, help="Write an HTML page instead of JSON")
    p.set_defaults(func=cmd_plot_flow)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--debug", action="store_true")
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
