"""Compile a SCORE spec to Terraform example.

Shows how to load a spec, inspect the compile report, and write the tree.
"""

from pathlib import Path

from scoreform import ScoreSpec, compile_spec, write_project

here = Path(__file__).parent
spec = ScoreSpec.from_file(here / "springboot-postgres-score.yaml")

print(f"Project: {spec.metadata.name} ({spec.metadata.provider}, {spec.metadata.region})")
for name, workload in spec.workloads.items():
    print(f"  {name}: {workload.type}")

project = compile_spec(spec)

# Fields the SCORE file declares but no module applies
for name, fields in project.report.ignored.items():
    print(f"  [ignored] {name}: {', '.join(fields)}")
for missing in project.report.missing:
    print(f"  [undefined] {missing.workload}.{missing.field}")

print("\n--- main.tf ---")
print(project.root.main)

# Placeholder credentials keep the literal password and add a warning
placeholder = compile_spec(spec, db_credentials="placeholder")
print("--- warnings with placeholder credentials ---")
for w in placeholder.report.warnings:
    print(f"  {w}")

written = write_project(project, here / "terraform")
print(f"\nWrote {len(written)} files to {here / 'terraform'}")
