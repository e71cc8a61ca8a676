import csv
import os
import tempfile
import unittest
from unittest.mock import patch

import requests

from ga4check.config import DetectorConfig
from ga4check.detector import Ga4Checker, load_urls_from_csv
from ga4check.errors import FetchError, Forbidden, InvalidURL
from ga4check.messages import MESSAGES
from ga4check.scorer import ScoringPolicy
from tests.helpers import GTM_URL, fake_session, page, requested_urls

ORIGIN = 'https://www.example.com'
SGTM_CONTAINER = 'var data={"resource":{}};c={server_container_url: "collect.example.com"};'


def checker_for(routes, **config):
    session = fake_session(routes)
    return Ga4Checker(DetectorConfig(**config), session=session), session


class TestAnalyze(unittest.TestCase):
    def test_direct_ga4_only(self):
        checker, session = checker_for({ORIGIN: page(head="<script>gtag('config','G-ABCDEFGHIJ')</script>")})
        result = checker.analyze('www.example.com/some/page?x=1')
        self.assertEqual(result.score, 3)
        self.assertTrue(result.details['has_ga4_direct'])
        self.assertFalse(result.details['has_gtm'])
        self.assertEqual(result.details['ga4_id'], 'G-ABCDEFGHIJ')
        self.assertEqual(result.details['visited_url'], ORIGIN)
        self.assertEqual(requested_urls(session), [ORIGIN])

    def test_no_identifiers(self):
        checker, _ = checker_for({ORIGIN: page(body='<p>plain</p>')})
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 2)
        self.assertEqual(result.message, MESSAGES['ja']['score_2'])
        self.assertIsNone(result.details['ga4_id'])
        self.assertIsNone(result.details['gtm_id'])
        self.assertIsNone(result.details['ua_id'])

    def test_loader_like_script_fallback(self):
        checker, _ = checker_for({ORIGIN: page(head='<script src="/a1b2c3d4.js?id=xyz"></script>')})
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 4)
        self.assertTrue(result.details['loader_script'])
        self.assertFalse(result.details['is_sgtm'])

    def test_server_container_signal(self):
        html = page(head='<script>gtag("config","G-ABCDEFGHIJ")</script>'
                         '<script src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234"></script>')
        checker, session = checker_for({ORIGIN: html, GTM_URL.format('GTM-ABC1234'): SGTM_CONTAINER})
        result = checker.analyze('www.example.com')
        self.assertEqual(result.score, 4)
        self.assertTrue(result.details['is_sgtm'])
        self.assertTrue(result.details['has_gtm'])
        self.assertEqual(result.details['gtm_id'], 'GTM-ABC1234')
        self.assertEqual(requested_urls(session), [ORIGIN, GTM_URL.format('GTM-ABC1234')])

    def test_container_ids_reported(self):
        html = page(head='<script src="https://www.googletagmanager.com/gtm.js?id=GTM-ABC1234"></script>')
        container = 'x={"vtp_measurementId":"G-NESTED1234"};y="UA-55555-3";'
        checker, _ = checker_for({ORIGIN: html, GTM_URL.format('GTM-ABC1234'): container}, locale='en')
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 3)
        self.assertFalse(result.details['has_ga4_direct'])
        self.assertTrue(result.details['has_ga4_gtm'])
        self.assertEqual(result.details['ga4_id'], 'G-NESTED1234')
        self.assertTrue(result.details['has_ua'])
        self.assertEqual(result.details['ua_id'], 'UA-55555-3')
        self.assertTrue(result.message.endswith(MESSAGES['en']['ua_warning']))

    def test_ua_warning_with_direct_ga4(self):
        html = page(head="<script>ga('create','UA-12345-1');gtag('config','G-ABCDEFGHIJ')</script>")
        checker, _ = checker_for({ORIGIN: html})
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 3)
        self.assertEqual(result.message, MESSAGES['ja']['score_3'] + '\n' + MESSAGES['ja']['ua_warning'])

    def test_obfuscated_gtm(self):
        html = page(head='<script>boot("dmFyIGlkPSJHVE0tQUJDMTIzNCI7")</script>')
        checker, session = checker_for({ORIGIN: html, GTM_URL.format('GTM-ABC1234'): 'plain'})
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 4)
        self.assertTrue(result.details['obfuscated_gtm'])
        self.assertEqual(result.details['gtm_id'], 'GTM-ABC1234')
        self.assertIn(GTM_URL.format('GTM-ABC1234'), requested_urls(session))

        checker, _ = checker_for({ORIGIN: html, GTM_URL.format('GTM-ABC1234'): 'plain'},
                                 scoring_policy=ScoringPolicy(obfuscated_gtm_implies_server_side=False))
        self.assertEqual(checker.analyze(ORIGIN).score, 3)

    def test_failed_container_then_server_side(self):
        html = page(body='GTM-AAAAAA1 GTM-BBBBBB2')
        checker, _ = checker_for({
            ORIGIN: html,
            GTM_URL.format('GTM-AAAAAA1'): requests.Timeout('slow'),
            GTM_URL.format('GTM-BBBBBB2'): SGTM_CONTAINER,
        })
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 4)
        self.assertEqual(result.details['gtm_ids'], ('GTM-AAAAAA1', 'GTM-BBBBBB2'))

    def test_idempotent(self):
        html = page(head='<script>GTM-ABC1234 UA-1-1</script>')
        checker, _ = checker_for({ORIGIN: html, GTM_URL.format('GTM-ABC1234'): 'y="G-NESTED1234"'})
        self.assertEqual(checker.analyze(ORIGIN), checker.analyze(ORIGIN))

    def test_invalid_url_makes_no_request(self):
        checker, session = checker_for({})
        with self.assertRaises(InvalidURL):
            checker.analyze('http://')
        session.get.assert_not_called()

    def test_page_errors_propagate(self):
        checker, _ = checker_for({ORIGIN: (403, '')})
        with self.assertRaises(Forbidden):
            checker.analyze(ORIGIN)
        checker, _ = checker_for({ORIGIN: requests.ConnectionError('dns')})
        with self.assertRaises(FetchError):
            checker.analyze(ORIGIN)

    def test_to_dict(self):
        checker, _ = checker_for({ORIGIN: page()})
        body = checker.analyze(ORIGIN).to_dict()
        self.assertEqual(set(body), {'score', 'message', 'details'})
        self.assertEqual(body['details']['ga4_ids'], [])

    def test_result_is_read_only(self):
        checker, _ = checker_for({ORIGIN: page(body='G-ABCDEFGHIJ')})
        result = checker.analyze(ORIGIN)
        with self.assertRaises(TypeError):
            result.details['is_sgtm'] = True
        self.assertEqual(result.details['ga4_ids'], ('G-ABCDEFGHIJ',))
        body = result.to_dict()
        body['details']['is_sgtm'] = True
        self.assertFalse(result.is_sgtm)

    def test_malformed_script_src_does_not_abort(self):
        html = page(head='<script src="http://[broken/x.js"></script>', body='G-ABCDEFGHIJ')
        checker, _ = checker_for({ORIGIN: html})
        result = checker.analyze(ORIGIN)
        self.assertEqual(result.score, 3)
        self.assertEqual(result.details['ga4_id'], 'G-ABCDEFGHIJ')

    def test_own_session_is_closed(self):
        session = fake_session({ORIGIN: page()})
        with patch('ga4check.detector.requests.Session', return_value=session):
            Ga4Checker().analyze(ORIGIN)
        session.close.assert_called_once()


class TestBatch(unittest.TestCase):
    def test_check_urls_rows(self):
        checker, _ = checker_for({
            ORIGIN: page(body='G-ABCDEFGHIJ'),
            'https://blocked.example.org': (403, ''),
        })
        rows = checker.check_urls(['www.example.com', 'blocked.example.org', 'http://'])
        by_url = {row['url']: row for row in rows}
        self.assertEqual(by_url['www.example.com']['status'], 'success')
        self.assertEqual(by_url['www.example.com']['score'], 3)
        self.assertEqual(by_url['www.example.com']['ga4_id'], 'G-ABCDEFGHIJ')
        self.assertEqual(by_url['blocked.example.org']['status'], 'error')
        self.assertEqual(by_url['http://']['status'], 'error')

    def test_malformed_script_src_in_batch(self):
        html = page(head='<script src="http://[broken/x.js"></script>', body='G-ABCDEFGHIJ')
        checker, _ = checker_for({ORIGIN: html})
        rows = checker.check_urls(['www.example.com'])
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['status'], 'success')
        self.assertEqual(rows[0]['score'], 3)

    def test_save_and_load_csv(self):
        checker, _ = checker_for({ORIGIN: page(body='G-ABCDEFGHIJ')})
        rows = checker.check_urls(['www.example.com'])
        with tempfile.TemporaryDirectory() as tmp:
            output = os.path.join(tmp, 'results.csv')
            checker.save_results(rows, output)
            with open(output, newline='', encoding='utf-8') as f:
                saved = list(csv.DictReader(f))
            self.assertEqual(saved[0]['score'], '3')
            self.assertEqual(saved[0]['origin'], ORIGIN)

            source = os.path.join(tmp, 'urls.csv')
            with open(source, 'w', newline='', encoding='utf-8') as f:
                f.write('Name,URL\na,example.com\nb,\nc, https://www.example.com \n')
            self.assertEqual(load_urls_from_csv(source), ['example.com', 'https://www.example.com'])
            with self.assertRaises(KeyError):
                load_urls_from_csv(source, 'Site')


if __name__ == '__main__':
    unittest.main()
