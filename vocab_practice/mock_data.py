"""Built-in word bank used when the database cannot be reached, and for seeding."""
import random
from typing import List, Optional

from .structured import Question

MOCK_WORDS: List[Question] = [
    Question(1, "走る", ["run", "jog"], ["駆ける", "疾走する"]),
    Question(2, "美しい", ["beautiful", "pretty", "gorgeous"], ["きれい", "素敵", "魅力的"]),
    Question(3, "大きい", ["big", "large", "huge"], ["巨大", "でかい"]),
    Question(4, "小さい", ["small", "little", "tiny"], ["ちっちゃい", "細かい"]),
    Question(5, "食べる", ["eat", "consume"], ["摂取する", "口にする"]),
    Question(6, "飲む", ["drink", "sip"], ["飲用する", "一口飲む"]),
    Question(7, "本", ["book"], ["書籍", "図書"]),
    Question(8, "猫", ["cat"], ["ねこ", "ネコ"]),
    Question(9, "犬", ["dog"], ["いぬ", "イヌ"]),
    Question(10, "車", ["car", "automobile"], ["自動車", "クルマ"]),
    Question(11, "家", ["house", "home"], ["住宅", "我が家"]),
    Question(12, "学校", ["school"], ["学園", "スクール"]),
    Question(13, "友達", ["friend", "buddy"], ["仲間", "親友"]),
    Question(14, "水", ["water"], ["お水", "H2O"]),
    Question(15, "火", ["fire", "flame"], ["炎", "燃える"]),
    Question(16, "空", ["sky", "heaven"], ["大空", "青空"]),
    Question(17, "海", ["sea", "ocean"], ["大海", "海洋"]),
    Question(18, "山", ["mountain", "hill"], ["やま", "山岳"]),
    Question(19, "川", ["river", "stream"], ["河川", "小川"]),
    Question(20, "花", ["flower", "blossom"], ["お花", "華"]),
]


def get_random_mock_words(count: int = 10) -> List[Question]:
    """Return up to ``count`` distinct built-in words in random order."""
    return random.sample(MOCK_WORDS, min(count, len(MOCK_WORDS)))


def get_mock_word_by_id(word_id: int) -> Optional[Question]:
    for word in MOCK_WORDS:
        if word.id == word_id:
            return word
    return None
