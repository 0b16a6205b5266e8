"""Unit tests and testing tools for the manual_acme_dns package."""

TEST_DOMAIN = "example.com"
TEST_WILDCARD_DOMAIN = "*.example.com"
TEST_EMAIL = "me@example.com"
TEST_PFX_PASSWORD = "asdf"
TEST_DIRECTORY = "https://acme.test/directory"
