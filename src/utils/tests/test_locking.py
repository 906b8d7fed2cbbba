from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase

from utils.locking import (
    LOCK_TIMEOUT,
    acquire,
    distribution_lock_name,
    extend,
    held,
    name,
    release,
)


class TestLockingFunctions(TestCase):
    def tearDown(self):
        cache.clear()

    def test_acquire_is_exclusive(self):
        """
        Test that a second acquire fails until the lock is released.
        """
        # Arrange
        lock_key = name("scheduler")

        # Act
        first = acquire(lock_key)
        second = acquire(lock_key)
        release(lock_key)
        third = acquire(lock_key)

        # Assert
        self.assertTrue(first)
        self.assertFalse(second)
        self.assertTrue(third)

    @patch("django.core.cache.cache.touch")
    def test_extend_lock(self, mock_touch):
        """
        Test that extending a lock refreshes its timeout.
        """
        # Arrange
        mock_touch.return_value = True
        lock_key = name("scheduler")

        # Act
        actual = extend(lock_key)

        # Assert
        self.assertTrue(actual)
        mock_touch.assert_called_once_with(lock_key, LOCK_TIMEOUT)

    def test_held_releases_on_exit(self):
        """
        Test that `held` releases the lock it acquired, even on error.
        """
        # Arrange
        lock_key = distribution_lock_name(7)

        # Act
        with self.assertRaises(RuntimeError):
            with held(lock_key) as acquired:
                self.assertTrue(acquired)
                raise RuntimeError("worker crashed")

        # Assert
        self.assertTrue(acquire(lock_key))

    def test_held_does_not_release_foreign_lock(self):
        """
        Test that `held` yields False and leaves another worker's lock alone.
        """
        # Arrange
        lock_key = distribution_lock_name(7)
        acquire(lock_key)

        # Act
        with held(lock_key) as acquired:
            pass

        # Assert
        self.assertFalse(acquired)
        self.assertFalse(acquire(lock_key))

    def test_lock_names(self):
        """
        Test that lock keys are namespaced per hackathon.
        """
        # Act
        result = distribution_lock_name(42)

        # Assert
        self.assertEqual(name("scheduler"), "lock:scheduler")
        self.assertEqual(result, "lock:distribution:42")
