#!/usr/bin/env python3
"""
Form Runner

Runs a form definition against the in-memory CRM and prints the outcome.
Useful for checking how relationship declarations reconcile across
repeated submissions.
"""

import argparse
import json
import sys

from pydantic import ValidationError

from formactions.api.schemas import FormRequest
from formactions.core.config import get_crm_gateway
from formactions.core.engine import FormProcessor


def main():
    parser = argparse.ArgumentParser(
        description="Run a form definition against the in-memory CRM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_form.py family.json
  python scripts/run_form.py family.json --repeat 2 --show-relationships
  python scripts/run_form.py family.json --mode validate
        """
    )

    parser.add_argument(
        "request_path",
        help="Path to a JSON file holding {form, values, submitter_contact_id}"
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["load", "validate", "submit"],
        default="submit",
        help="Which pass to run (default: submit)"
    )

    parser.add_argument(
        "--repeat", "-r",
        type=int,
        default=1,
        help="Submit the same request this many times against one CRM"
    )

    parser.add_argument(
        "--show-relationships", "-s",
        action="store_true",
        help="Print every stored Relationship after the run"
    )

    args = parser.parse_args()

    try:
        with open(args.request_path) as f:
            request = FormRequest.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: Could not read {args.request_path}: {e}")
        sys.exit(1)
    except ValidationError as e:
        print(f"ERROR: Invalid form request:\n{e}")
        sys.exit(1)

    crm = get_crm_gateway()
    processor = FormProcessor(crm=crm)

    if args.mode == "load":
        result = processor.load(request.form, request.values, request.submitter_contact_id)
        print(json.dumps({"values": result.values, "outputs": result.outputs}, indent=2, default=str))
        return

    if args.mode == "validate":
        errors = processor.validate(request.form, request.values, request.submitter_contact_id)
        for error in errors:
            print(f"✗ {error.action_name}: {error.message}")
        if errors:
            sys.exit(1)
        print("✓ Form is valid")
        return

    for run in range(1, args.repeat + 1):
        result = processor.submit(request.form, request.values, request.submitter_contact_id)
        if not result.success:
            for error in result.errors:
                print(f"✗ {error.action_name}: {error.message}")
            sys.exit(1)

        print(f"✓ Submission {run} complete")
        print(json.dumps(result.outputs, indent=2, default=str))

    if args.show_relationships:
        for relationship in crm.list_relationships():
            print(f"  #{relationship.id} type={relationship.relationship_type_id} "
                  f"a={relationship.contact_id_a} b={relationship.contact_id_b}")


if __name__ == "__main__":
    main()
