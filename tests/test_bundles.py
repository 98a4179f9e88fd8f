from __future__ import annotations

import unittest

from cert_tracker.bundles import PRIMARY, SATELLITE, absorbed_indices, bundle_role, find_bundles

CUSTOMER_X = "12345678000190"
CUSTOMER_Y = "98765432000110"


class BundleRoleTests(unittest.TestCase):
    def test_roles(self):
        self.assertEqual(bundle_role("IP DEDICADO 50MB"), PRIMARY)
        self.assertEqual(bundle_role("Dedicated IP"), PRIMARY)
        self.assertEqual(bundle_role("Monitoramento  de Dados"), SATELLITE)
        self.assertEqual(bundle_role("Internet IP"), SATELLITE)
        self.assertIsNone(bundle_role("VPN"))
        self.assertIsNone(bundle_role(None))


class FindBundlesTests(unittest.TestCase):
    def test_satellites_join_the_customers_primary(self):
        bundles = find_bundles(
            [
                (0, "IP Dedicado 50MB", CUSTOMER_X),
                (1, "Monitoramento de Dados", CUSTOMER_X),
                (2, "Internet IP", CUSTOMER_X),
                (3, "Monitoramento de Dados", CUSTOMER_Y),
            ]
        )
        self.assertEqual(len(bundles), 1)
        self.assertEqual(bundles[0].primary, 0)
        self.assertEqual(bundles[0].satellites, [1, 2])
        self.assertEqual(absorbed_indices(bundles), {1, 2})

    def test_satellite_listed_before_primary_is_still_absorbed(self):
        bundles = find_bundles([(0, "Internet IP", CUSTOMER_X), (1, "IP Dedicado", CUSTOMER_X)])
        self.assertEqual([(bundle.primary, bundle.satellites) for bundle in bundles], [(1, [0])])

    def test_first_primary_absorbs_when_customer_has_several(self):
        bundles = find_bundles(
            [
                (0, "IP Dedicado 10MB", CUSTOMER_X),
                (1, "IP Dedicado 20MB", CUSTOMER_X),
                (2, "Internet IP", CUSTOMER_X),
            ]
        )
        self.assertEqual(len(bundles), 1)
        self.assertEqual(bundles[0].primary, 0)

    def test_rows_without_tax_id_never_bundle(self):
        bundles = find_bundles([(0, "IP Dedicado", ""), (1, "Internet IP", "")])
        self.assertEqual(bundles, [])

    def test_primary_without_satellites_is_not_a_bundle(self):
        self.assertEqual(find_bundles([(0, "IP Dedicado", CUSTOMER_X)]), [])


if __name__ == "__main__":
    unittest.main()
