import unittest

from logvisualizer.log_data import ASCENSION_START, LogData, parse_log_file_name
from logvisualizer.models import (
    Consumable,
    ConsumableVersion,
    CountableCollection,
    DayChange,
    EquipmentChange,
    FamiliarChange,
    MeatGain,
    MPGain,
    NO_MEAT,
    NO_MP,
    NO_STATS,
    SimpleTurnInterval,
    SingleTurn,
    Skill,
    Statgain,
    new_consumable,
)


def _turn(turn_number: int, area: str = "The Spooky Forest", day: int = 1, **fields) -> SingleTurn:
    return SingleTurn(areaName=area, encounterName=area, turnNumber=turn_number, dayNumber=day, **fields)


class GainAndCollectionTests(unittest.TestCase):
    def test_statgains_add_per_stat(self) -> None:
        total = Statgain(mus=1) + Statgain(mus=2, mox=-1)

        self.assertEqual(total, Statgain(mus=3, mox=-1))
        self.assertEqual(total.total, 2)

    def test_gains_add_commutatively_and_associatively(self) -> None:
        samples = [
            (Statgain(mus=1, myst=-2), Statgain(mox=4), Statgain(mus=3, myst=3, mox=-1), NO_STATS),
            (MeatGain(encounterMeatGain=10), MeatGain(otherMeatGain=5, meatSpent=2), MeatGain(meatSpent=7), NO_MEAT),
            (
                MPGain(encounterMPGain=3, starfishMPGain=1),
                MPGain(restingMPGain=20),
                MPGain(outOfEncounterMPGain=4, consumableMPGain=6),
                NO_MP,
            ),
        ]
        for a, b, c, zero in samples:
            with self.subTest(gain=type(a).__name__):
                self.assertEqual(a + b, b + a)
                self.assertEqual((a + b) + c, a + (b + c))
                self.assertEqual(a + zero, a)
                self.assertEqual(zero + a, a)

    def test_zero_gains_are_empty_and_frozen(self) -> None:
        self.assertTrue(NO_MEAT.is_meat_gain_zero())
        self.assertTrue(NO_STATS.is_all_stats_zero())
        self.assertTrue(NO_MP.is_mp_gain_zero())
        with self.assertRaises(ValueError):
            NO_STATS.mus = 1

    def test_consumables_merge_by_name_and_day(self) -> None:
        collection = CountableCollection()
        collection.add(new_consumable(ConsumableVersion.FOOD, "fortune cookie", 1, 1, 3, day_number=1))
        collection.add(new_consumable(ConsumableVersion.FOOD, "fortune cookie", 1, 1, 2, day_number=1))
        collection.add(new_consumable(ConsumableVersion.FOOD, "fortune cookie", 1, 1, 9, day_number=2))

        self.assertEqual(len(collection), 2)
        merged = collection.get(("fortune cookie", 1))
        self.assertEqual((merged.amount, merged.adventureGain, merged.turnNumberOfUsage), (2, 2, 2))

    def test_consumable_merge_sums_and_ignores_empty_records(self) -> None:
        cookie = new_consumable(ConsumableVersion.FOOD, "fortune cookie", 1, 1, 3, stat_gain=Statgain(mus=2))
        cookie.merge(new_consumable(ConsumableVersion.FOOD, "fortune cookie", 2, 2, 4, stat_gain=Statgain(mox=1)))

        self.assertEqual((cookie.amount, cookie.adventureGain), (3, 3))
        self.assertEqual(cookie.statGain, Statgain(mus=2, mox=1))

        before = cookie.model_copy()
        empty = Consumable.model_construct(
            name="fortune cookie",
            adventureGain=0,
            amount=0,
            turnNumberOfUsage=cookie.turnNumberOfUsage,
            dayNumberOfUsage=1,
            statGain=NO_STATS,
            version=ConsumableVersion.FOOD,
        )
        cookie.merge(empty)

        self.assertEqual(cookie, before)

    def test_added_elements_are_copied(self) -> None:
        skill = Skill(name="salsaball", amount=1, mpCost=1)
        collection = CountableCollection([skill])
        collection.add(Skill(name="salsaball", amount=2, mpCost=2))

        self.assertEqual(skill.amount, 1)
        self.assertEqual(collection.get("salsaball").amount, 3)

    def test_skill_cost_never_drops_below_one(self) -> None:
        skill = Skill(name="salsaball")
        skill.set_casts(3, -3, 1)

        self.assertEqual(skill.mpCost, 3)
        with self.assertRaises(ValueError):
            skill.set_casts(1, -4, 1)


class LogDataTests(unittest.TestCase):
    def test_new_aggregate_is_seeded(self) -> None:
        log_data = LogData()

        self.assertEqual(log_data.last_turn_spent.areaName, ASCENSION_START)
        self.assertEqual([day.dayNumber for day in log_data.day_changes], [1])
        self.assertEqual(log_data.current_level(50).levelNumber, 1)
        self.assertFalse(log_data.has_summary)
        with self.assertRaises(ValueError):
            log_data.summary

    def test_turn_kinds_are_fixed_by_mode(self) -> None:
        with self.assertRaises(ValueError):
            LogData(detailed=True).add_turn_interval_spent(
                SimpleTurnInterval(areaName="The Spooky Forest", startTurn=0, endTurn=3)
            )
        with self.assertRaises(ValueError):
            LogData(detailed=False).add_turn_spent(_turn(1))
        with self.assertRaises(ValueError):
            LogData(detailed=False).turns_spent

    def test_interval_end_is_clamped_to_start(self) -> None:
        interval = SimpleTurnInterval(areaName="The Spooky Forest", startTurn=5, endTurn=3)

        self.assertEqual((interval.startTurn, interval.endTurn, interval.totalTurns), (5, 5, 0))
        with self.assertRaises(ValueError):
            SimpleTurnInterval(areaName="The Spooky Forest", startTurn=-1, endTurn=3)

    def test_free_action_with_same_turn_number_folds_into_adventure(self) -> None:
        log_data = LogData()
        log_data.add_turn_spent(_turn(1))
        log_data.add_turn_spent(_turn(2, statGain=Statgain(mus=5)))
        log_data.add_turn_spent(_turn(2, area="The Haunted Pantry"))

        turns = log_data.turns_spent
        self.assertEqual([turn.turnNumber for turn in turns], [0, 1, 2])
        self.assertEqual(turns[1].statGain.mus, 5)
        self.assertEqual(len(turns[1].encounters), 1)
        self.assertEqual(turns[2].areaName, "The Haunted Pantry")

    def test_equipment_change_repeating_the_last_is_dropped(self) -> None:
        log_data = LogData()
        log_data.add_equipment_change(EquipmentChange(turnNumber=3, hat="helmet turtle"))
        log_data.add_equipment_change(EquipmentChange(turnNumber=5, hat="helmet turtle"))

        self.assertEqual([change.turnNumber for change in log_data.equipment_changes], [0, 3])
        self.assertEqual(log_data.last_equipment_change_before(4).turnNumber, 3)

    def test_last_familiar_change_of_a_turn_wins(self) -> None:
        log_data = LogData()
        log_data.add_familiar_change(FamiliarChange(familiarName="Mosquito", turnNumber=4))
        log_data.add_familiar_change(FamiliarChange(familiarName="Leprechaun", turnNumber=4))

        self.assertEqual(
            [(change.familiarName, change.turnNumber) for change in log_data.familiar_changes],
            [("none", 0), ("Leprechaun", 4)],
        )
        with self.assertRaises(ValueError):
            log_data.last_familiar_change_before(-1)

    def test_current_day_and_header_footer_comments(self) -> None:
        log_data = LogData()
        log_data.add_day_change(DayChange(dayNumber=2, turnNumber=40))

        self.assertEqual(log_data.current_day(39).dayNumber, 1)
        self.assertEqual(log_data.current_day(40).dayNumber, 2)
        self.assertTrue(log_data.header_footer_comment(2).header.is_empty())
        with self.assertRaises(ValueError):
            log_data.set_header_footer_comment(3, log_data.header_footer_comment(2))

    def test_learned_skills_on_one_turn_are_joined(self) -> None:
        log_data = LogData()
        log_data.add_learned_skill("Salsaball", 3)
        log_data.add_learned_skill("Spaghetti Spear", 3)
        log_data.add_learned_skill("Toss", 4)

        self.assertEqual(log_data.learned_skills, [("Salsaball; Spaghetti Spear", 3), ("Toss", 4)])

    def test_hybrid_repeats_are_counted(self) -> None:
        log_data = LogData()
        for _ in range(3):
            log_data.add_hybrid_content("Hybridizing Fish Hybrid", 7)

        self.assertEqual(log_data.hybrid_content, [("Hybridizing Fish Hybrid (3)", 7)])

    def test_summary_groups_turns_into_area_intervals(self) -> None:
        log_data = LogData()
        for turn_number in range(1, 4):
            log_data.add_turn_spent(_turn(turn_number))
        for turn_number in range(4, 7):
            log_data.add_turn_spent(_turn(turn_number, area="The Haunted Pantry"))

        summary = log_data.create_log_summary()

        intervals = log_data.turn_intervals_spent
        self.assertEqual(
            [(interval.areaName, interval.startTurn, interval.endTurn) for interval in intervals],
            [(ASCENSION_START, 0, 0), ("The Spooky Forest", 0, 3), ("The Haunted Pantry", 3, 6)],
        )
        self.assertEqual(dict(summary.turns_per_area), {"The Spooky Forest": 3, "The Haunted Pantry": 3})

    def test_sub_interval_log_keeps_data_between_turns(self) -> None:
        log_data = LogData()
        for turn_number in range(1, 7):
            log_data.add_turn_spent(_turn(turn_number, day=1 if turn_number < 3 else 2))
        log_data.add_day_change(DayChange(dayNumber=2, turnNumber=3))
        log_data.add_hunted_combat("screaming bat", 2)
        log_data.add_hunted_combat("dairy goat", 6)
        log_data.create_log_summary()

        sub = log_data.sub_interval_log(2, 4)

        self.assertTrue(sub.is_sub_interval)
        self.assertEqual([turn.turnNumber for turn in sub.turns_spent], [2, 3, 4])
        self.assertEqual([day.dayNumber for day in sub.day_changes], [1, 2])
        self.assertEqual(sub.hunted_combats, [("screaming bat", 2)])
        self.assertEqual(sub.last_turn_spent.turnNumber, 4)
        with self.assertRaises(ValueError):
            log_data.sub_interval_log(4, 2)

    def test_log_file_name_metadata(self) -> None:
        self.assertEqual(parse_log_file_name("Tester_ascend_20140105.txt"), ("Tester", "20140105"))
        self.assertEqual(parse_log_file_name("logs/Tester_20131231_120000.txt"), ("Tester", "20131231"))
        self.assertEqual(parse_log_file_name("rundown.txt"), ("", ""))


if __name__ == "__main__":
    unittest.main()
