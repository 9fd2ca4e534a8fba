"""seed starter question pool

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-16 00:10:00.000000

Options are stored as JSON arrays. Sessions record answers as option
indices, so seeded rows must not be reordered once in use; retire a
question with is_active = false instead.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO questions (category, difficulty, question, options, is_active, for_couples, for_friends, for_family)
        VALUES
          ('daily_life', 'easy',   'Ideal Sunday morning?',                        '["Sleep in", "Brunch out", "Workout", "Lazy coffee at home"]', true, true, true,  true),
          ('daily_life', 'easy',   'Who usually takes out the trash?',              '["Me", "My partner", "Whoever notices first", "Nobody, it piles up"]', true, true, false, true),
          ('daily_life', 'easy',   'Best weeknight dinner?',                        '["Pasta", "Takeout", "Something grilled", "Cereal"]', true, true, true,  true),
          ('daily_life', 'medium', 'How do we spend a rainy evening?',              '["Movie marathon", "Board games", "Cooking together", "Each on our phones"]', true, true, true,  false),
          ('heart',      'easy',   'Favourite way to say I love you?',              '["Words", "Hugs", "Small gifts", "Doing chores"]', true, true, false, false),
          ('heart',      'medium', 'What makes a perfect date?',                    '["Fancy dinner", "Picnic", "Adventure", "Night in"]', true, true, false, false),
          ('heart',      'medium', 'After an argument, what helps most?',           '["Talking it out now", "Some space first", "A hug", "A joke"]', true, true, false, false),
          ('heart',      'hard',   'Which gesture means the most?',                 '["Handwritten note", "Surprise visit", "Remembering details", "Breakfast in bed"]', true, true, false, false),
          ('history',    'easy',   'Where did we first meet?',                      '["School or work", "Through friends", "Online", "By pure chance"]', true, true, false, false),
          ('history',    'medium', 'Best trip we have taken?',                      '["Beach", "City", "Mountains", "Still waiting for it"]', true, true, false, false),
          ('history',    'medium', 'Who said I love you first?',                    '["Me", "My partner", "At the same time", "Still debated"]', true, true, false, false),
          ('spice',      'medium', 'Most romantic time of day?',                    '["Morning", "Afternoon", "Evening", "Late night"]', true, true, false, false),
          ('spice',      'hard',   'Which outfit wins?',                            '["Dressed up", "Casual", "Pajamas", "Sporty"]', true, true, false, false),
          ('fun',        'easy',   'Which superpower would we share?',              '["Teleportation", "Invisibility", "Mind reading", "Time travel"]', true, true, true,  true),
          ('fun',        'easy',   'Pick a pet for the two of us.',                 '["Dog", "Cat", "Fish", "A very large plant"]', true, true, true,  true),
          ('fun',        'medium', 'Zombie apocalypse: who survives longer?',       '["Me", "My partner", "We survive together", "Neither, honestly"]', true, true, true,  false),
          ('fun',        'medium', 'Our karaoke song?',                             '["A power ballad", "A duet", "Something from the 80s", "We do not sing"]', true, true, true,  false)
    """)


def downgrade() -> None:
    op.execute("DELETE FROM questions")
