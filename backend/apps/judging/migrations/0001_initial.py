import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("events", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Evaluation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("innovation", models.FloatField(blank=True, null=True, verbose_name="创新性")),
                ("impact", models.FloatField(blank=True, null=True, verbose_name="影响力")),
                ("feasibility", models.FloatField(blank=True, null=True, verbose_name="可行性")),
                ("presentation", models.FloatField(blank=True, null=True, verbose_name="展示")),
                ("comments", models.TextField(blank=True, verbose_name="评语")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "待确认"), ("complete", "已完成")],
                        default="pending",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="evaluations",
                        to="events.event",
                        verbose_name="活动",
                    ),
                ),
                (
                    "judge",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="evaluations",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="评委",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="evaluations",
                        to="events.team",
                        verbose_name="队伍",
                    ),
                ),
            ],
            options={
                "verbose_name": "评审记录",
                "verbose_name_plural": "评审记录",
                "ordering": ["team_id", "judge_id", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("event", "team", "judge"), name="uniq_evaluation_per_judge_team")
                ],
            },
        ),
    ]
