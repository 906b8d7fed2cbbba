import random

from rest_framework.authtoken.models import Token

from user.models import User


class TestData:
    first_name = "Regulus"
    last_name = "Black"

    valid_email = "testuser@gmail.com"
    valid_password = "ReHub940"
    wallet_address = "0x00000000000000000000000000000000000000a1"


def create_random_authenticated_user(unique_value, **kwargs):
    user = create_random_default_user(unique_value, **kwargs)
    Token.objects.create(user=user)
    return user


def create_random_default_user(unique_value, **kwargs):
    """
    Returns an instance of User with name and email based on `unique_value`.
    """
    first_name = TestData.first_name + str(unique_value)
    last_name = TestData.last_name + str(unique_value)
    email = str(unique_value) + str(random.random()) + TestData.valid_email
    return create_user(
        first_name=first_name, last_name=last_name, email=email, **kwargs
    )


def create_user(
    first_name=TestData.first_name,
    last_name=TestData.last_name,
    email=TestData.valid_email,
    password=TestData.valid_password,
    wallet_address="",
    is_staff=False,
):
    return User.objects.create(
        username=email,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        wallet_address=wallet_address,
        is_staff=is_staff,
    )


def create_distribution_admin(unique_value, wallet_address=TestData.wallet_address):
    return create_random_authenticated_user(
        unique_value, wallet_address=wallet_address, is_staff=True
    )
