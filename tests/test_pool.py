"""
Tests for the shared worker pool and the thread factory guard
"""
import unittest

from warden.foundation.pool import (
    DEFAULT_FACTORY,
    POOL_FACTORY_PROPERTY,
    ContextThreadFactory,
    DefaultThreadFactory,
    WorkerPool,
    common_pool,
    ensure_pool_factory_correct,
    load_factory,
    qualified_name,
    reset_common_pool,
)
from warden.foundation.properties import SystemProperties
from warden.util.errors import PoolFactoryError
from warden.util.logging import correlation_id, correlation_id_scope


class TestPoolFactoryGuard(unittest.TestCase):
    """Test cases for ensure_pool_factory_correct"""

    def setUp(self):
        self.pool = WorkerPool(DefaultThreadFactory(), max_workers=1)

    def tearDown(self):
        self.pool.shutdown()

    def test_mismatch_aborts(self):
        properties = SystemProperties({POOL_FACTORY_PROPERTY: "X"})
        with self.assertLogs("warden.foundation.pool", level="ERROR") as logs:
            with self.assertRaises(PoolFactoryError):
                ensure_pool_factory_correct(properties, self.pool)
        self.assertIn(POOL_FACTORY_PROPERTY, logs.output[0])
        self.assertIn("'X'", logs.output[0])

    def test_missing_property_aborts(self):
        with self.assertRaises(PoolFactoryError):
            ensure_pool_factory_correct(SystemProperties(), self.pool)

    def test_match_has_no_effect(self):
        properties = SystemProperties({POOL_FACTORY_PROPERTY: qualified_name(self.pool.factory)})
        with self.assertNoLogs("warden.foundation.pool", level="DEBUG"):
            self.assertIsNone(ensure_pool_factory_correct(properties, self.pool))
        self.assertEqual(properties, {POOL_FACTORY_PROPERTY: "warden.foundation.pool.DefaultThreadFactory"})

    def test_guard_does_not_touch_the_pool(self):
        properties = SystemProperties({POOL_FACTORY_PROPERTY: "X"})
        with self.assertRaises(PoolFactoryError):
            ensure_pool_factory_correct(properties, self.pool)
        self.assertEqual(self.pool.submit(lambda: 42).result(timeout=5), 42)


class TestCommonPool(unittest.TestCase):
    """Test cases for the process-wide pool"""

    def setUp(self):
        reset_common_pool()

    def tearDown(self):
        reset_common_pool()

    def test_factory_comes_from_property(self):
        name = qualified_name(DefaultThreadFactory())
        pool = common_pool(SystemProperties({POOL_FACTORY_PROPERTY: name}))
        self.assertIsInstance(pool.factory, DefaultThreadFactory)
        self.assertNotIsInstance(pool.factory, ContextThreadFactory)

    def test_default_factory(self):
        pool = common_pool(SystemProperties())
        self.assertEqual(qualified_name(pool.factory), DEFAULT_FACTORY)

    def test_early_creation_is_detected(self):
        # Something touched the pool before the launcher published the property
        pool = common_pool(SystemProperties())
        properties = SystemProperties(
            {POOL_FACTORY_PROPERTY: qualified_name(DefaultThreadFactory())}
        )
        self.assertIs(common_pool(properties), pool)
        with self.assertRaises(PoolFactoryError):
            ensure_pool_factory_correct(properties, common_pool(properties))

    def test_unloadable_factory_falls_back_and_guard_reports_it(self):
        properties = SystemProperties({POOL_FACTORY_PROPERTY: "X"})
        with self.assertLogs("warden.foundation.pool", level="WARNING") as logs:
            pool = common_pool(properties)
            with self.assertRaises(PoolFactoryError):
                ensure_pool_factory_correct(properties, pool)
        self.assertIs(type(pool.factory), DefaultThreadFactory)
        self.assertTrue(logs.output[0].startswith("WARNING:"))
        self.assertIn("'X'", logs.output[0])
        self.assertTrue(logs.output[1].startswith("ERROR:"))
        self.assertIn(POOL_FACTORY_PROPERTY, logs.output[1])

    def test_missing_factory_module_falls_back(self):
        properties = SystemProperties({POOL_FACTORY_PROPERTY: "no_such_module.Factory"})
        with self.assertLogs("warden.foundation.pool", level="WARNING"):
            pool = common_pool(properties)
        self.assertIs(type(pool.factory), DefaultThreadFactory)

    def test_context_factory_propagates_correlation_id(self):
        pool = common_pool(SystemProperties())
        with correlation_id_scope("boot-1"):
            result = pool.submit(correlation_id.get).result(timeout=5)
        self.assertEqual(result, "boot-1")


class TestLoadFactory(unittest.TestCase):
    """Test cases for load_factory"""

    def test_loads_dotted_path(self):
        self.assertIsInstance(load_factory(DEFAULT_FACTORY), ContextThreadFactory)

    def test_rejects_bare_name(self):
        with self.assertRaises(ValueError):
            load_factory("ContextThreadFactory")


if __name__ == "__main__":
    unittest.main()
