"""
Digest post-processing runner.

Reads:
  - digest_io/digest_input.json   (html_body, text_body, headers, recipient,
                                   optional "config" overrides)

Produces:
  - digest_io/digest_output.json  (mutated message + processing report)

Configuration comes from DIGEST_* environment variables (.env supported);
keys under "config" in the input file override them.
"""
import json
import logging
import sys
from pathlib import Path

from digest_postprocessing.config.settings import DIGEST_IO_DIR, LOG_LEVEL, digest_settings_from_env

# ---------------------------------------------------------------------------
# Setup logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("run_postprocessing")

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
ROOT = Path(__file__).parent
IO_DIR = ROOT / DIGEST_IO_DIR

INPUT_FILE  = IO_DIR / "digest_input.json"
OUTPUT_FILE = IO_DIR / "digest_output.json"

# ---------------------------------------------------------------------------
# Load input
# ---------------------------------------------------------------------------
logger.info("Loading input from %s", INPUT_FILE)

with open(INPUT_FILE, encoding="utf-8") as f:
    digest_input: dict = json.load(f)

from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.email_message import EmailMessage, Recipient

recipient_raw: dict = digest_input.get("recipient") or {}
recipient = Recipient(id=int(recipient_raw.get("id", 0)), email=recipient_raw.get("email", ""))

message = EmailMessage(
    html_body=digest_input.get("html_body"),
    text_body=digest_input.get("text_body"),
    headers=dict(digest_input.get("headers") or {}),
)

config = DigestConfig.from_mapping({**digest_settings_from_env(), **(digest_input.get("config") or {})})

logger.info("recipient         : %d", recipient.id)
logger.info("origin_domain     : %s", config.origin_domain or "(unset)")
logger.info("html_body         : %d chars", len(message.html_body or ""))
logger.info("text_body         : %d chars", len(message.text_body or ""))

# ---------------------------------------------------------------------------
# Run pipeline
# ---------------------------------------------------------------------------
from digest_postprocessing.processing.pipeline import run_digest_pipeline

logger.info("Running digest post-processing...")

report = run_digest_pipeline(message, recipient, config)

result = {
    "message": {
        "html_body": message.html_body,
        "text_body": message.text_body,
        "headers": message.headers,
    },
    "report": report.to_dict(),
}

# ---------------------------------------------------------------------------
# Save output
# ---------------------------------------------------------------------------
with open(OUTPUT_FILE, "w", encoding="utf-8") as f:
    json.dump(result, f, ensure_ascii=False, indent=2)

logger.info("Output saved to: %s", OUTPUT_FILE)

# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------
print("\n" + "=" * 70)
print("DIGEST POST-PROCESSING — SUMMARY")
print("=" * 70)
print(f"email_id       : {report.email_id}")
print(f"target domain  : {report.target_domain or '-'}")
print(f"topics         : html={report.html_topic_count} text={report.text_topic_count}")
print(f"annotated      : {report.links_annotated}")
print(f"redirected     : {report.links_redirected}")
print(f"trimmed        : html={report.excerpts_trimmed} text={report.text_blocks_trimmed}")

if report.hosts_swapped:
    print("\nHosts swapped:")
    for area, count in sorted(report.hosts_swapped.items()):
        print(f"  {area:20s} {count}")

if report.regex_fallback:
    print("\nHTML parser unavailable: regex link annotation only")

if report.warnings:
    print(f"\nWarnings: {report.warnings}")

print("=" * 70)
print(f"Output: {OUTPUT_FILE}")
print("=" * 70 + "\n")
