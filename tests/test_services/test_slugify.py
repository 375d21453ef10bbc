from playbookd.utils.slugify import create_slug_mapping, generate_slug, get_slug_for, resolve_slug


def test_generate_slug_uses_first_and_last_name():
    assert generate_slug("Jane Q. Doe", "abcdef123456") == "jane-doe-123456"


def test_generate_slug_single_name_and_empty():
    assert generate_slug("Madonna", "0123456789ab") == "madonna-456789ab"
    assert generate_slug("", "0123456789ab") == "coach-456789ab"
    assert generate_slug("!!!", "0123456789ab") == "coach-456789ab"


def test_create_slug_mapping_is_idempotent(mock_db):
    mock_db.creators_index.insert_one({"_id": "uid-000111", "displayName": "Jane Doe"})

    slug = create_slug_mapping("uid-000111", "Jane Doe")
    assert slug == "jane-doe-000111"
    assert get_slug_for("uid-000111") == slug
    assert mock_db.creators_index.find_one({"_id": "uid-000111"})["slug"] == slug

    # a later rename keeps the original slug
    assert create_slug_mapping("uid-000111", "Janet Doe") == slug
    assert mock_db.slug_mappings.count_documents({}) == 1


def test_resolve_slug(mock_db):
    slug = create_slug_mapping("uid-222333", "Sam Smith")
    assert resolve_slug(slug) == "uid-222333"
    # unknown values are treated as ids
    assert resolve_slug("uid-999") == "uid-999"


def test_colliding_slug_gets_suffix(mock_db):
    first = "a" * 26 + "123456"
    second = "b" * 26 + "123456"

    s1 = create_slug_mapping(first, "Jordan Lee")
    s2 = create_slug_mapping(second, "Jordan Lee")
    s3 = create_slug_mapping("c" * 26 + "123456", "Jordan Lee")

    assert s1 == "jordan-lee-123456"
    assert s2 == "jordan-lee-123456-2"
    assert s3 == "jordan-lee-123456-3"
    assert resolve_slug(s1) == first
    assert resolve_slug(s2) == second
    assert mock_db.slug_mappings.find_one({"_id": s1})["displayName"] == "Jordan Lee"
