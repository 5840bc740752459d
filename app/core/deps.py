from app.services.face_matching import FaceMatcher, face_matcher


def get_face_matcher() -> FaceMatcher:
    """Face-matching client shared by registration and scan endpoints; overridden in tests."""
    return face_matcher
