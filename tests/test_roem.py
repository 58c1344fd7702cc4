"""Tests for roem detection and claim validation."""
from klaverjas.server.models import Card, PlayedCard, Suit
from klaverjas.server.roem import (
    RoemClaim, RoemType, available_cards_for, detect_all_roem, detect_four_of_a_kind,
    detect_sequences, detect_stuk, validate_roem_claim,
)


def cards(*ids):
    return [Card.from_id(i) for i in ids]


def claim(kind, *ids):
    return RoemClaim(kind, tuple(cards(*ids)))


class TestDetectSequences:

    def test_three_in_a_row(self):
        found = detect_sequences(cards('7_hearts', '8_hearts', '9_hearts', 'A_spades'))
        assert [c.type for c in found] == [RoemType.SEQUENCE3]
        assert found[0].points == 20

    def test_four_in_a_row(self):
        found = detect_sequences(cards('10_clubs', 'J_clubs', 'Q_clubs', 'K_clubs'))
        assert [c.type for c in found] == [RoemType.SEQUENCE4]
        assert found[0].points == 50

    def test_uses_positional_order_not_trick_strength(self):
        # 9-10-J is a run by position even though 10 outranks J in play
        found = detect_sequences(cards('9_diamonds', '10_diamonds', 'J_diamonds'))
        assert [c.type for c in found] == [RoemType.SEQUENCE3]

    def test_five_in_a_row_counts_once(self):
        found = detect_sequences(cards('7_spades', '8_spades', '9_spades', '10_spades', 'J_spades'))
        assert len(found) == 1
        assert found[0].type == RoemType.SEQUENCE4

    def test_mixed_suits_do_not_count(self):
        assert detect_sequences(cards('7_hearts', '8_spades', '9_hearts')) == []


class TestDetectStukAndFour:

    def test_stuk_needs_trump_king_and_queen(self):
        assert detect_stuk(cards('K_hearts', 'Q_hearts'), Suit.HEARTS).points == 20
        assert detect_stuk(cards('K_hearts', 'Q_hearts'), Suit.SPADES) is None

    def test_four_jacks(self):
        found = detect_four_of_a_kind(cards('J_spades', 'J_hearts', 'J_clubs', 'J_diamonds'))
        assert len(found) == 1
        assert found[0].points == 100

    def test_four_sevens_score_nothing(self):
        assert detect_four_of_a_kind(cards('7_spades', '7_hearts', '7_clubs', '7_diamonds')) == []


class TestDetectAll:

    def test_sequence_and_stuk_stack(self):
        detected = detect_all_roem(cards('Q_hearts', 'K_hearts', 'A_hearts', '7_spades'), Suit.HEARTS)
        assert {c.type for c in detected.claims} == {RoemType.SEQUENCE3, RoemType.STUK}
        assert detected.total_points == 40

    def test_nothing_found(self):
        detected = detect_all_roem(cards('7_hearts', '9_spades', 'A_clubs', 'J_diamonds'), Suit.HEARTS)
        assert detected.claims == []
        assert detected.total_points == 0


class TestValidateClaim:

    def test_valid_sequence(self):
        available = cards('7_hearts', '8_hearts', '9_hearts', 'K_spades')
        assert validate_roem_claim(claim(RoemType.SEQUENCE3, '7_hearts', '8_hearts', '9_hearts'),
                                   available, Suit.SPADES)

    def test_claimed_cards_must_be_available(self):
        available = cards('7_hearts', '8_hearts')
        assert not validate_roem_claim(claim(RoemType.SEQUENCE3, '7_hearts', '8_hearts', '9_hearts'),
                                       available, Suit.SPADES)

    def test_under_claim_is_rejected(self):
        available = cards('7_hearts', '8_hearts', '9_hearts', '10_hearts')
        four = ('7_hearts', '8_hearts', '9_hearts', '10_hearts')
        assert not validate_roem_claim(claim(RoemType.SEQUENCE3, *four), available, Suit.SPADES)
        assert validate_roem_claim(claim(RoemType.SEQUENCE4, *four), available, Suit.SPADES)

    def test_sequence4_with_three_cards_is_rejected(self):
        available = cards('7_hearts', '8_hearts', '9_hearts')
        assert not validate_roem_claim(claim(RoemType.SEQUENCE4, '7_hearts', '8_hearts', '9_hearts'),
                                       available, Suit.SPADES)

    def test_stuk_must_be_trump(self):
        available = cards('K_hearts', 'Q_hearts')
        assert validate_roem_claim(claim(RoemType.STUK, 'K_hearts', 'Q_hearts'), available, Suit.HEARTS)
        assert not validate_roem_claim(claim(RoemType.STUK, 'K_hearts', 'Q_hearts'), available, Suit.CLUBS)

    def test_four_of_a_kind_rank_must_qualify(self):
        eights = ('8_spades', '8_hearts', '8_clubs', '8_diamonds')
        assert not validate_roem_claim(claim(RoemType.FOUR_OF_A_KIND, *eights), cards(*eights), Suit.SPADES)
        aces = ('A_spades', 'A_hearts', 'A_clubs', 'A_diamonds')
        assert validate_roem_claim(claim(RoemType.FOUR_OF_A_KIND, *aces), cards(*aces), Suit.SPADES)

    def test_duplicate_cards_are_rejected(self):
        available = cards('7_hearts', '8_hearts')
        assert not validate_roem_claim(claim(RoemType.SEQUENCE3, '7_hearts', '8_hearts', '8_hearts'),
                                       available, Suit.SPADES)

    def test_available_cards_include_own_trick_card(self):
        hand = cards('8_hearts', '9_hearts')
        trick = [PlayedCard(0, Card.from_id('7_hearts')), PlayedCard(1, Card.from_id('A_spades'))]
        available = available_cards_for(0, hand, trick)
        assert Card.from_id('7_hearts') in available
        assert Card.from_id('A_spades') not in available

    def test_claim_dict_round_trip(self):
        original = claim(RoemType.STUK, 'K_hearts', 'Q_hearts')
        assert RoemClaim.from_dict(original.to_dict()) == original
