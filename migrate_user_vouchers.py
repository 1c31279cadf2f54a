"""
Migration Script: Convert owned vouchers to the map format
Run this once to rewrite list-shaped `vouchers` fields on user documents
as {voucher_id: quantity}
"""

from firebase_client import get_db
from user_vouchers import USERS_COLLECTION, normalize_owned_vouchers


def migrate_user_vouchers(db=None):
    """
    Rewrite every user's vouchers field in the map format.

    Strategy:
    - ["id1", "id1", "id2"] -> {"id1": 2, "id2": 1}
    - [{"voucherId": "id1", "quantity": 3}] -> {"id1": 3}
    - Users already holding a map are skipped

    Returns:
        tuple: (updated_count, skipped_count)
    """
    db = db or get_db()
    users_ref = db.collection(USERS_COLLECTION)

    updated_count = 0
    skipped_count = 0

    print("Starting user voucher migration...")
    print("-" * 50)

    for doc in users_ref.stream():
        try:
            user_data = doc.to_dict() or {}
            raw = user_data.get('vouchers')

            if isinstance(raw, dict):
                skipped_count += 1
                continue

            new_vouchers = normalize_owned_vouchers(raw)
            print(f"✓ User {doc.id[:8]}... {raw!r} -> {new_vouchers}")

            users_ref.document(doc.id).update({'vouchers': new_vouchers})
            updated_count += 1

        except Exception as e:
            print(f"✗ Error updating user {doc.id}: {str(e)}")

    print("-" * 50)
    print("Migration complete!")
    print(f"✅ Updated: {updated_count} users")
    print(f"⏭️  Skipped: {skipped_count} users (already in map format)")
    return updated_count, skipped_count


def verify_migration(db=None):
    """Verify all users hold vouchers as a map"""
    db = db or get_db()
    print("\nVerifying migration...")
    print("-" * 50)

    total = 0
    not_migrated = []

    for doc in db.collection(USERS_COLLECTION).stream():
        total += 1
        if not isinstance((doc.to_dict() or {}).get('vouchers'), dict):
            not_migrated.append(doc.id)

    print(f"Total users: {total}")
    print(f"✗ Not migrated: {len(not_migrated)}")

    if not_migrated:
        print("\nUsers still not migrated:")
        for user_id in not_migrated:
            print(f"  - {user_id}")
    else:
        print("\n🎉 All users hold vouchers as a map!")
    return not_migrated


if __name__ == "__main__":
    print("=" * 50)
    print("USER VOUCHER MIGRATION")
    print("=" * 50)
    print()

    migrate_user_vouchers()
    verify_migration()

    print()
    print("=" * 50)
    print("Migration completed!")
