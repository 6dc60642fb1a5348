#!/usr/bin/env python3
"""
examples/generate_demo.py

Demonstrates GitScribe end to end: a short scripted conversation is turned into
patches against a real repository. Requires GROQ_API_KEY in the environment.
"""

import argparse
import asyncio
from datetime import datetime, timedelta

from gitscribe.types.base import ConversationEntry, RepositoryRef
from gitscribe.workflow import run_generation


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Demonstrate GitScribe's patch generation")
    parser.add_argument("--repo-url", type=str, required=True, help="Clone URL of the repository")
    parser.add_argument("--branch", type=str, default="main", help="Branch to target (default: main)")
    return parser.parse_args()


def demo_transcript():
    start = datetime.now() - timedelta(minutes=5)
    lines = [
        ("alice", "We need a health check for the load balancer."),
        ("bob", "Add a GET /health endpoint that just returns 200."),
        ("alice", "Put it next to the other routes in the server file."),
    ]
    return [
        ConversationEntry(timestamp=start + timedelta(seconds=30 * i), username=user, text=text)
        for i, (user, text) in enumerate(lines)
    ]


def main():
    args = parse_args()
    ref = RepositoryRef(url=args.repo_url, branch=args.branch)

    patch_set = asyncio.run(run_generation(ref, demo_transcript()))

    print("\n=== Summary ===")
    print(patch_set.summary)
    print(f"\nTool rounds: {patch_set.iterations}")
    for file_patch in patch_set.files:
        status = "FAILED" if file_patch.failed else "ok"
        print(f"\n=== {file_patch.filename} ({status}) ===")
        print(file_patch.patch or "(no changes)")


if __name__ == "__main__":
    main()
