from decimal import Decimal

import pytest

from emberorm.core import DecimalField, ForeignKey, IntegerField, Model, StringField
from emberorm.validation import MaxValueValidator, MinValueValidator, ValidationError


class Review(Model):
    author = StringField(max_length=30, nullable=False)
    stars = IntegerField(nullable=True, validators=[MinValueValidator(1), MaxValueValidator(5)])
    price = DecimalField(max_digits=5, decimal_places=2, nullable=True)


class Comment(Model):
    body = StringField(nullable=False)
    review = ForeignKey(Review, related_name="comments", db_column="review_id")


def test_field_validation_error():
    review = Review(author="Ann", stars=9)
    with pytest.raises(ValidationError) as excinfo:
        review.full_clean()
    assert excinfo.value.errors == {"stars": ["Ensure value is less than or equal to 5."]}
    assert excinfo.value.entity == "Review"
    assert str(excinfo.value).startswith("Review: stars:")


def test_missing_required_fields_are_collected():
    review = Review(stars=0)
    with pytest.raises(ValidationError) as excinfo:
        review.full_clean()
    assert set(excinfo.value.errors) == {"author", "stars"}
    assert excinfo.value.errors["author"] == ["This field cannot be null."]


def test_valid_instance_passes():
    Review(author="Ann", stars=3, price=Decimal("12.50")).full_clean()


def test_foreign_key_linked_to_unsaved_parent_passes():
    comment = Comment(body="Great", review=Review(author="Ann"))
    comment.full_clean()

    with pytest.raises(ValidationError) as excinfo:
        Comment(body="Orphan").full_clean()
    assert "review" in excinfo.value.errors


def test_model_clean_hook():
    class Account(Model):
        email = StringField(nullable=False)
        confirm_email = StringField(nullable=False)

        def clean(self):
            if self.email != self.confirm_email:
                raise ValidationError({"email": ["Emails must match."]})

    account = Account(email="a@example.com", confirm_email="b@example.com")
    with pytest.raises(ValidationError) as excinfo:
        account.full_clean()
    assert excinfo.value.errors["email"] == ["Emails must match."]


def test_nullable_fields_pass():
    class Optional(Model):
        nickname = StringField(nullable=True)

    obj = Optional()
    obj.full_clean()  # should not raise
