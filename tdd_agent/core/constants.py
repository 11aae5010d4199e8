"""
Constants
Project layout conventions, fence tags and prompt-independent literals.
"""
SOURCE_ROOT = "src/main/java"
TEST_ROOT = "src/test/java"
SOURCE_EXTENSION = ".java"
TEST_CLASS_SUFFIX = "Test"
MANIFEST_FILE = "pom.xml"

FENCE = "```"
SOURCE_FENCE_TAG = "java"
MANIFEST_FENCE_TAG = "xml"

MAVEN_TEST_ARGS = ["-Dstyle.color=never", "test"]
