"""
LLM Prompts
===========
Centralised store for the three prompt variants of the convergence loop.

Prompt Variants:
    - primary-fix  — every regular iteration (primary model)
    - fallback-fix — the one-off escalation after the iteration budget (fallback model)
    - manifest-fix — dependency-resolution failures (primary model)

Extraction Contract:
    The Code Extractor only reads the first ```java / ```xml block, so every
    template insists on exactly one fenced block and no prose. This is a
    best-effort contract with the generator, not an enforced one.

Templating:
    Pure substitution, no conditional logic. An absent package name is
    substituted as an empty string.
"""
from tdd_agent.models.generation_target import GenerationTarget


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------
PRIMARY_PROMPT = """\
You are an AI Java TDD assistant.

The user wants you to work ONLY on the following class:
{class_name}

This class MUST be placed in the following package (if not empty):
{package_name}

If the class does not exist yet, create it.
If it already exists, rewrite the entire file.

Specification / intended behavior:
{specification}

Here is the full JUnit test class that must pass:
{test_source}

Below is the JUnit test output showing the failures.
Your task:
- Produce the FULL Java source code for the class.
- The class MUST start with the correct package declaration if provided.
- Modify ONLY the specified class.
- Ensure the logic satisfies the specification and the tests.
- Do NOT create or modify any other files.
- Do NOT include explanations, comments, or prose.
- Output ONLY the Java source code.
- Wrap the code in a single ```java ... ``` block.

Test output:
{test_output}
"""

FALLBACK_PROMPT = """\
You are a high-reasoning Java expert.

A smaller model failed to fix the class after many attempts.
Now you must produce a fully correct solution.

The user wants you to work ONLY on the following class:
{class_name}

This class MUST be placed in the following package (if not empty):
{package_name}

If the class does not exist yet, create it.
If it already exists, rewrite the entire file.

Specification / intended behavior:
{specification}

Here is the full JUnit test class that must pass:
{test_source}

Below is the JUnit test output showing the failures.
Your task:
- Carefully analyze the specification, the test class, and the test failures.
- Produce the FULL Java source code for the class.
- The class MUST start with the correct package declaration if provided.
- Modify ONLY the specified class.
- Ensure the logic is complete and all tests pass.
- Do NOT create or modify any other files.
- Do NOT include explanations, comments, or prose.
- Output ONLY the Java source code.
- Wrap the code in a single ```java ... ``` block.

Test output:
{test_output}
"""

MANIFEST_PROMPT = """\
You are an AI Maven dependency expert.

The Java code failed to compile due to missing dependencies.

Your task:
- Analyze the test output.
- Produce ONLY the <dependency> entries that must be added to pom.xml.
- Do NOT output the full pom.xml.
- Do NOT wrap the entries in a <dependencies> element.
- Do NOT include explanations or comments.
- Output ONLY one ```xml ... ``` block containing one or more <dependency> elements.

Test output:
{test_output}
"""


# ---------------------------------------------------------------------------
# Prompt Builders
# ---------------------------------------------------------------------------
def _fill_fix_template(template: str, target: GenerationTarget, test_source: str, test_output: str) -> str:
    return template.format(
        class_name=target.class_name,
        package_name=target.package_name or "",
        specification=target.specification,
        test_source=test_source,
        test_output=test_output,
    )


def build_primary_prompt(target: GenerationTarget, test_source: str, test_output: str) -> str:
    """Prompt for a regular iteration of the primary model."""
    return _fill_fix_template(PRIMARY_PROMPT, target, test_source, test_output)


def build_fallback_prompt(target: GenerationTarget, test_source: str, test_output: str) -> str:
    """Prompt for the escalation call to the fallback model."""
    return _fill_fix_template(FALLBACK_PROMPT, target, test_source, test_output)


def build_manifest_prompt(test_output: str) -> str:
    """Prompt asking for the <dependency> entries that fix a resolution failure."""
    return MANIFEST_PROMPT.format(test_output=test_output)
