#!/usr/bin/env python3
"""Import words from a CSV file into the word bank.

Usage: python import_words.py [--csv path] [--seed]

CSV header: japanese_meaning,primary_answer,alternative_answers,synonyms
"""
import sys, os, argparse
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from vocab_practice import db, words
from vocab_practice.csv_import import parse_words_from_csv_file
from vocab_practice.errors import VocabError

def main() -> None:
    parser = argparse.ArgumentParser(description="Import words CSV")
    parser.add_argument("--csv", default="data/words.csv")
    parser.add_argument("--seed", action="store_true", help="Also load the built-in word bank")
    args = parser.parse_args()

    db.Base.metadata.create_all(bind=db.engine)
    if args.seed:
        db.seed_words()

    if not os.path.exists(args.csv):
        print(f"❌ CSV not found: {args.csv}"); sys.exit(1)

    parsed = parse_words_from_csv_file(args.csv)
    if not parsed.success:
        print(f"❌ {len(parsed.errors)} problem(s) in {args.csv}:")
        for message in parsed.errors:
            print(f"   {message}")
        sys.exit(1)

    try:
        result = words.batch_create_words(parsed.words)
    except VocabError as e:
        print(f"❌ {e.message}"); sys.exit(1)

    for error in result.errors:
        print(f"   ⚠️ #{error.index} 「{error.japanese_meaning}」: {error.error}")
    with db.session_scope("count words") as session:
        total = db.count_active_words(session)
    print(f"\n📊 Words: {result.created} created, {result.failed} skipped, {total} active in total")

if __name__ == "__main__":
    main()
